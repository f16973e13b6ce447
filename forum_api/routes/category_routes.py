from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.deps.auth import require_admin
from forum_api.errors import NotFoundError, envelope
from forum_api.models.user_model import User
from forum_api.repositories import categories as repo
from forum_api.schemas.common import Envelope
from forum_api.schemas.forum_schemas import CategoryCreateIn, CategoryOut, CategoryUpdateIn

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=Envelope[List[CategoryOut]])
async def list_categories(db: AsyncSession = Depends(get_async_session)):
    rows = await repo.list_active_categories(db)
    return envelope(True, [CategoryOut.model_validate(c) for c in rows])


@router.get("/{category_id}", response_model=Envelope[CategoryOut])
async def get_category(category_id: int, db: AsyncSession = Depends(get_async_session)):
    category = await repo.get_category(db, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return envelope(True, CategoryOut.model_validate(category))


@router.post("", response_model=Envelope[CategoryOut], status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreateIn,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    category = await repo.create_category(db, **payload.model_dump())
    return envelope(True, CategoryOut.model_validate(category), "Category created successfully")


@router.put("/{category_id}", response_model=Envelope[CategoryOut])
async def update_category(
    category_id: int,
    payload: CategoryUpdateIn,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    # admins may edit (and re-activate) soft-deleted categories
    category = await repo.get_category(db, category_id, include_inactive=True)
    if not category:
        raise NotFoundError("Category not found")
    category = await repo.update_category(db, category, payload.model_dump(exclude_none=True))
    return envelope(True, CategoryOut.model_validate(category), "Category updated successfully")


@router.delete("/{category_id}", response_model=Envelope[None])
async def delete_category(
    category_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    category = await repo.get_category(db, category_id)
    if not category:
        raise NotFoundError("Category not found")
    await repo.soft_delete_category(db, category)
    return envelope(True, message="Category deleted successfully")
