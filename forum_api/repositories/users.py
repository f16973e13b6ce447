from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.errors import ConflictError
from forum_api.models.user_model import User
from forum_api.utils.token_utils import hash_password


async def get_user(db: AsyncSession, user_id: int, include_inactive: bool = False) -> Optional[User]:
    user = await db.get(User, user_id)
    if user is None or (not include_inactive and not user.is_active):
        return None
    return user


async def find_by_login(db: AsyncSession, login: str) -> Optional[User]:
    """Look a user up by username or (case-insensitive) email."""
    login = login.strip()
    rows = await db.execute(
        select(User).where(
            (User.username == login) | (func.lower(User.email) == login.lower())
        )
    )
    return rows.scalars().first()


async def create_user(db: AsyncSession, username: str, email: str, password: str) -> User:
    username_norm = username.strip()
    email_norm = email.strip().lower()

    # Check username OR email conflict in a single round-trip
    existing = (
        await db.execute(
            select(User).where(
                (User.username == username_norm) | (func.lower(User.email) == email_norm)
            )
        )
    ).scalars().all()
    if any((u.email or "").lower() == email_norm for u in existing):
        raise ConflictError("Email already exists")
    if any(u.username == username_norm for u in existing):
        raise ConflictError("Username already exists")

    user = User(username=username_norm, email=email_norm, password=hash_password(password))
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username or email already exists")
    await db.refresh(user)
    return user


async def update_profile(db: AsyncSession, user: User, bio: Optional[str], avatar: Optional[str]) -> User:
    # empty values keep what is stored
    if bio:
        user.bio = bio
    if avatar:
        user.avatar = avatar
    await db.commit()
    await db.refresh(user)
    return user


async def search_users(db: AsyncSession, q: Optional[str], offset: int, limit: int) -> Tuple[List[User], int]:
    filters = [User.is_active.is_(True)]
    if q:
        filters.append(or_(User.username.ilike(f"%{q}%"), User.bio.ilike(f"%{q}%")))

    total = int((await db.execute(select(func.count(User.id)).where(*filters))).scalar_one() or 0)
    rows = await db.execute(
        select(User)
        .where(*filters)
        .order_by(User.reputation.desc(), User.created_at.desc(), User.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(rows.scalars().all()), total
