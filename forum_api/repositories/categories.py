from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.errors import ConflictError
from forum_api.models.forum_model import Category


async def get_category(db: AsyncSession, category_id: int, include_inactive: bool = False) -> Optional[Category]:
    category = await db.get(Category, category_id)
    if category is None or (not include_inactive and not category.is_active):
        return None
    return category


async def list_active_categories(db: AsyncSession) -> List[Category]:
    rows = await db.execute(
        select(Category)
        .where(Category.is_active.is_(True))
        .order_by(Category.order.asc(), Category.name.asc())
    )
    return list(rows.scalars().all())


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(func.count(Category.id)).where(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    return (await db.execute(stmt)).scalar_one() > 0


async def create_category(db: AsyncSession, **fields) -> Category:
    if await _name_taken(db, fields["name"]):
        raise ConflictError("Category name already exists")

    category = Category(**fields)
    db.add(category)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race with another insert of the same name
        await db.rollback()
        raise ConflictError("Category name already exists")
    await db.refresh(category)
    return category


async def update_category(db: AsyncSession, category: Category, values: dict) -> Category:
    name = values.get("name")
    if name is not None and await _name_taken(db, name, exclude_id=category.id):
        raise ConflictError("Category name already exists")

    for key, value in values.items():
        setattr(category, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Category name already exists")
    await db.refresh(category)
    return category


async def soft_delete_category(db: AsyncSession, category: Category) -> None:
    category.is_active = False
    await db.commit()
