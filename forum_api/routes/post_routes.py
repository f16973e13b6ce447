import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.deps.auth import get_current_user, get_current_user_optional
from forum_api.errors import ForbiddenError, NotFoundError, envelope
from forum_api.models.user_model import User
from forum_api.repositories import posts as repo
from forum_api.repositories.threads import get_thread
from forum_api.routes._mappers import post_to_out
from forum_api.schemas.common import Envelope
from forum_api.schemas.forum_schemas import (
    LikeOut, PostCreateIn, PostEditOut, PostHistoryOut, PostOut, PostPageOut, PostUpdateIn,
)
from forum_api.services import counters
from forum_api.services.likes import toggle_like
from forum_api.utils.pagination import PageParams, page_params, pagination_meta
from forum_api.utils.permissions import can_edit_post, can_mutate, can_post

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])


async def _active_post(db: AsyncSession, post_id: int):
    """Active post and its thread; a post under a deleted thread is gone too."""
    post = await repo.get_post(db, post_id)
    if not post:
        raise NotFoundError("Post not found")
    thread = await get_thread(db, post.thread_id)
    if not thread:
        raise NotFoundError("Post not found")
    return post, thread


@router.get("/thread/{thread_id}", response_model=Envelope[PostPageOut])
async def list_thread_posts(
    thread_id: int,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    if not await get_thread(db, thread_id):
        raise NotFoundError("Thread not found")

    rows, total = await repo.list_thread_posts(db, thread_id, paging.offset, paging.limit)
    data = {
        "posts": [await post_to_out(p, db, viewer) for p in rows],
        "pagination": pagination_meta(paging.page, paging.limit, total),
    }
    return envelope(True, data)


@router.post("", response_model=Envelope[PostOut], status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreateIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await get_thread(db, payload.thread_id)
    if not thread:
        raise NotFoundError("Thread not found")

    if not can_post(user, thread):
        raise ForbiddenError("Thread is locked")

    if payload.parent_post_id is not None:
        parent = await repo.get_post(db, payload.parent_post_id)
        if not parent or parent.thread_id != thread.id:
            raise NotFoundError("Parent post not found")

    post = await repo.create_post(
        db,
        thread=thread,
        author_id=user.id,
        content=payload.content,
        parent_post_id=payload.parent_post_id,
    )
    await counters.on_post_created(db, post, thread)
    logger.info("Post %s created in thread %s by user %s", post.id, thread.id, user.id)

    return envelope(True, await post_to_out(post, db, user), "Post created successfully")


@router.post("/{post_id}/like", response_model=Envelope[LikeOut])
async def like_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _active_post(db, post_id)
    liked, count = await toggle_like(db, "post", post_id, user.id)
    return envelope(
        True,
        LikeOut(liked=liked, like_count=count),
        "Post liked" if liked else "Post unliked",
    )


@router.put("/{post_id}", response_model=Envelope[PostOut])
async def update_post(
    post_id: int,
    payload: PostUpdateIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    post, thread = await _active_post(db, post_id)
    if not can_edit_post(user, post, thread):
        raise ForbiddenError("Not authorized to edit this post")

    post = await repo.edit_post(db, post, payload.content)
    return envelope(True, await post_to_out(post, db, user), "Post updated successfully")


@router.delete("/{post_id}", response_model=Envelope[None])
async def delete_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    post, thread = await _active_post(db, post_id)
    if not can_mutate(user, post):
        raise ForbiddenError("Not authorized to delete this post")

    # a concurrent delete may have won between the lookup and here
    if not await repo.soft_delete_post(db, post):
        raise NotFoundError("Post not found")
    await counters.on_post_deleted(db, post, thread)
    logger.info("Post %s soft-deleted by user %s", post_id, user.id)
    return envelope(True, message="Post deleted successfully")


@router.get("/{post_id}/history", response_model=Envelope[PostHistoryOut])
async def post_history(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    # soft-deleted posts stay readable here for their author and admins
    post = await repo.get_post(db, post_id, include_inactive=True)
    if not post:
        raise NotFoundError("Post not found")
    if not can_mutate(user, post):
        raise ForbiddenError("Not authorized to view this post's history")

    history = await repo.edit_history(db, post_id)
    data = PostHistoryOut(
        post_id=post.id,
        is_active=bool(post.is_active),
        content=post.content,
        edit_history=[PostEditOut.model_validate(e) for e in history],
    )
    return envelope(True, data)
