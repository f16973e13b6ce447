import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.deps.auth import get_current_user, get_current_user_optional, require_admin
from forum_api.errors import ForbiddenError, NotFoundError, ValidationError, envelope
from forum_api.models.forum_model import ForumThread
from forum_api.models.user_model import User
from forum_api.repositories import threads as repo
from forum_api.repositories.categories import get_category
from forum_api.routes._mappers import thread_to_out
from forum_api.schemas.common import Envelope
from forum_api.schemas.forum_schemas import (
    LikeOut, LockToggleIn, PinToggleIn, ThreadCreateIn, ThreadOut, ThreadPageOut, ThreadUpdateIn,
)
from forum_api.services import counters
from forum_api.services.likes import toggle_like
from forum_api.utils.pagination import PageParams, page_params, pagination_meta
from forum_api.utils.permissions import can_mutate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/threads", tags=["threads"])


async def _active_thread(db: AsyncSession, thread_id: int):
    thread = await repo.get_thread(db, thread_id)
    if not thread:
        raise NotFoundError("Thread not found")
    return thread


# ------------------------------
# Routes
# ------------------------------
@router.get("", response_model=Envelope[ThreadPageOut])
async def list_threads(
    paging: PageParams = Depends(page_params),
    category: Optional[int] = None,
    search: Optional[str] = None,
    sort: str = Query("recent"),
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    rows, total = await repo.list_threads(
        db,
        offset=paging.offset,
        limit=paging.limit,
        category_id=category,
        search=(search or "").strip() or None,
        sort=sort,
    )
    data = {
        "threads": [await thread_to_out(t, db, viewer) for t in rows],
        "pagination": pagination_meta(paging.page, paging.limit, total),
    }
    return envelope(True, data)


@router.get("/{thread_id}", response_model=Envelope[ThreadOut])
async def get_thread(
    thread_id: int,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    # reading a thread counts as a view
    if not await repo.increment_views(db, thread_id):
        raise NotFoundError("Thread not found")
    thread = await db.get(ForumThread, thread_id, populate_existing=True)
    return envelope(True, await thread_to_out(thread, db, viewer))


@router.post("", response_model=Envelope[ThreadOut], status_code=status.HTTP_201_CREATED)
async def create_thread(
    payload: ThreadCreateIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not await get_category(db, payload.category_id):
        raise ValidationError("Invalid category")

    thread = await repo.create_thread(
        db,
        author_id=user.id,
        category_id=payload.category_id,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
    )
    await counters.on_thread_created(db, thread)
    logger.info("Thread %s created by user %s in category %s", thread.id, user.id, thread.category_id)

    await db.refresh(thread)
    return envelope(True, await thread_to_out(thread, db, user), "Thread created successfully")


@router.post("/{thread_id}/like", response_model=Envelope[LikeOut])
async def like_thread(
    thread_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _active_thread(db, thread_id)
    # Likes are allowed on locked threads.
    liked, count = await toggle_like(db, "thread", thread_id, user.id)
    return envelope(
        True,
        LikeOut(liked=liked, like_count=count),
        "Thread liked" if liked else "Thread unliked",
    )


@router.put("/{thread_id}", response_model=Envelope[ThreadOut])
async def update_thread(
    thread_id: int,
    payload: ThreadUpdateIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await _active_thread(db, thread_id)
    if not can_mutate(user, thread):
        raise ForbiddenError("Not authorized to edit this thread")

    thread = await repo.update_thread(db, thread, payload.model_dump(exclude_none=True))
    return envelope(True, await thread_to_out(thread, db, user), "Thread updated successfully")


@router.delete("/{thread_id}", response_model=Envelope[None])
async def delete_thread(
    thread_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await _active_thread(db, thread_id)
    if not can_mutate(user, thread):
        raise ForbiddenError("Not authorized to delete this thread")

    # a concurrent delete may have won between the lookup and here
    if not await repo.soft_delete_thread(db, thread):
        raise NotFoundError("Thread not found")
    # replies under the thread keep their counters; reconciliation settles them
    await counters.on_thread_deleted(db, thread)
    logger.info("Thread %s soft-deleted by user %s", thread_id, user.id)
    return envelope(True, message="Thread deleted successfully")


@router.patch("/{thread_id}/lock", response_model=Envelope[ThreadOut])
async def set_thread_lock(
    thread_id: int,
    body: LockToggleIn,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await _active_thread(db, thread_id)
    thread = await repo.update_thread(db, thread, {"is_locked": body.locked})
    return envelope(True, await thread_to_out(thread, db, admin), "Thread locked" if body.locked else "Thread unlocked")


@router.patch("/{thread_id}/pin", response_model=Envelope[ThreadOut])
async def set_thread_pin(
    thread_id: int,
    body: PinToggleIn,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await _active_thread(db, thread_id)
    thread = await repo.update_thread(db, thread, {"is_pinned": body.pinned})
    return envelope(True, await thread_to_out(thread, db, admin), "Thread pinned" if body.pinned else "Thread unpinned")
