from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.deps.auth import get_current_user, get_current_user_optional
from forum_api.errors import NotFoundError, envelope
from forum_api.models.user_model import User
from forum_api.repositories import users as repo
from forum_api.repositories.posts import list_user_posts
from forum_api.repositories.threads import list_threads
from forum_api.routes._mappers import thread_to_out, user_post_to_out
from forum_api.schemas.common import Envelope
from forum_api.schemas.forum_schemas import ProfileOut, ThreadPageOut, UserPostPageOut
from forum_api.schemas.user_schemas import ProfileUpdateIn, UserOut, UserPageOut
from forum_api.utils.pagination import PageParams, page_params, pagination_meta

router = APIRouter(prefix="/api/users", tags=["users"])

RECENT_ITEMS = 5


async def _active_user(db: AsyncSession, user_id: int) -> User:
    user = await repo.get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=Envelope[UserPageOut])
async def search_users(
    q: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_async_session),
):
    rows, total = await repo.search_users(db, (q or "").strip() or None, paging.offset, paging.limit)
    data = {
        "users": [UserOut.model_validate(u) for u in rows],
        "pagination": pagination_meta(paging.page, paging.limit, total),
    }
    return envelope(True, data)


# declared before /{user_id} so "profile" is not parsed as an id
@router.put("/profile", response_model=Envelope[UserOut])
async def update_profile(
    payload: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    user = await repo.update_profile(db, user, payload.bio, payload.avatar)
    return envelope(True, UserOut.model_validate(user), "Profile updated successfully")


@router.get("/{user_id}", response_model=Envelope[ProfileOut])
async def get_profile(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    user = await _active_user(db, user_id)

    threads, threads_count = await list_threads(
        db, offset=0, limit=RECENT_ITEMS, author_id=user.id, sort="newest",
    )
    posts, posts_count = await list_user_posts(db, user.id, 0, RECENT_ITEMS)

    data = {
        "user": UserOut.model_validate(user),
        "recent_threads": [await thread_to_out(t, db, viewer) for t in threads],
        "recent_posts": [await user_post_to_out(p, db) for p in posts],
        "stats": {"threads_count": threads_count, "posts_count": posts_count},
    }
    return envelope(True, data)


@router.get("/{user_id}/threads", response_model=Envelope[ThreadPageOut])
async def user_threads(
    user_id: int,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    rows, total = await list_threads(
        db, offset=paging.offset, limit=paging.limit, author_id=user_id, sort="newest",
    )
    data = {
        "threads": [await thread_to_out(t, db, viewer) for t in rows],
        "pagination": pagination_meta(paging.page, paging.limit, total),
    }
    return envelope(True, data)


@router.get("/{user_id}/posts", response_model=Envelope[UserPostPageOut])
async def user_posts(
    user_id: int,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_async_session),
):
    rows, total = await list_user_posts(db, user_id, paging.offset, paging.limit)
    data = {
        "posts": [await user_post_to_out(p, db) for p in rows],
        "pagination": pagination_meta(paging.page, paging.limit, total),
    }
    return envelope(True, data)
