from typing import List, Optional, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.models.base import utcnow
from forum_api.models.forum_model import ForumPost, PostEdit, ForumThread


async def get_post(db: AsyncSession, post_id: int, include_inactive: bool = False) -> Optional[ForumPost]:
    post = await db.get(ForumPost, post_id)
    if post is None or (not include_inactive and not post.is_active):
        return None
    return post


async def list_thread_posts(db: AsyncSession, thread_id: int, offset: int, limit: int) -> Tuple[List[ForumPost], int]:
    filters = [ForumPost.thread_id == thread_id, ForumPost.is_active.is_(True)]
    total = int((await db.execute(select(func.count(ForumPost.id)).where(*filters))).scalar_one() or 0)
    rows = await db.execute(
        select(ForumPost)
        .where(*filters)
        .order_by(ForumPost.created_at.asc(), ForumPost.id.asc())
        .offset(offset)
        .limit(limit)
    )
    return list(rows.scalars().all()), total


async def list_user_posts(db: AsyncSession, author_id: int, offset: int, limit: int) -> Tuple[List[ForumPost], int]:
    filters = [ForumPost.author_id == author_id, ForumPost.is_active.is_(True)]
    total = int((await db.execute(select(func.count(ForumPost.id)).where(*filters))).scalar_one() or 0)
    rows = await db.execute(
        select(ForumPost)
        .where(*filters)
        .order_by(ForumPost.created_at.desc(), ForumPost.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(rows.scalars().all()), total


async def create_post(
    db: AsyncSession,
    thread: ForumThread,
    author_id: int,
    content: str,
    parent_post_id: Optional[int] = None,
) -> ForumPost:
    post = ForumPost(
        thread_id=thread.id,
        author_id=author_id,
        content=content,
        parent_post_id=parent_post_id,
    )
    db.add(post)
    await db.commit()
    await db.refresh(post)
    return post


async def edit_post(db: AsyncSession, post: ForumPost, content: str) -> ForumPost:
    """Snapshot the current content into the history, then replace it."""
    now = utcnow()
    db.add(PostEdit(post_id=post.id, content=post.content, edited_at=now))
    post.content = content
    post.is_edited = True
    post.edited_at = now
    await db.commit()
    await db.refresh(post)
    return post


async def edit_history(db: AsyncSession, post_id: int) -> List[PostEdit]:
    rows = await db.execute(
        select(PostEdit)
        .where(PostEdit.post_id == post_id)
        .order_by(PostEdit.edited_at.asc(), PostEdit.id.asc())
    )
    return list(rows.scalars().all())


async def soft_delete_post(db: AsyncSession, post: ForumPost) -> bool:
    """Flip an active post to inactive. False if it was already inactive."""
    result = await db.execute(
        update(ForumPost)
        .where(ForumPost.id == post.id, ForumPost.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return bool(result.rowcount)
