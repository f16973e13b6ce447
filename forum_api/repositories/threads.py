from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.models.base import utcnow
from forum_api.models.forum_model import ForumThread
from forum_api.models.like_model import ThreadLike

SORT_KEYS = ("recent", "popular", "replies", "likes", "newest")


async def get_thread(db: AsyncSession, thread_id: int, include_inactive: bool = False) -> Optional[ForumThread]:
    thread = await db.get(ForumThread, thread_id)
    if thread is None or (not include_inactive and not thread.is_active):
        return None
    return thread


def _apply_sort(stmt, sort: str):
    if sort == "newest":
        return stmt.order_by(ForumThread.created_at.desc(), ForumThread.id.desc())
    if sort == "popular":
        return stmt.order_by(ForumThread.views.desc(), ForumThread.created_at.desc(), ForumThread.id.desc())
    if sort == "replies":
        return stmt.order_by(ForumThread.reply_count.desc(), ForumThread.created_at.desc(), ForumThread.id.desc())
    if sort == "likes":
        likes = (
            select(ThreadLike.thread_id, func.count(ThreadLike.id).label("n"))
            .group_by(ThreadLike.thread_id)
            .subquery()
        )
        return (
            stmt.outerjoin(likes, likes.c.thread_id == ForumThread.id)
            .order_by(func.coalesce(likes.c.n, 0).desc(), ForumThread.created_at.desc(), ForumThread.id.desc())
        )
    # recent: pinned first, then latest activity
    return stmt.order_by(
        ForumThread.is_pinned.desc(),
        ForumThread.last_reply_at.desc(),
        ForumThread.created_at.desc(),
        ForumThread.id.desc(),
    )


async def list_threads(
    db: AsyncSession,
    offset: int,
    limit: int,
    category_id: Optional[int] = None,
    author_id: Optional[int] = None,
    search: Optional[str] = None,
    sort: str = "recent",
) -> Tuple[List[ForumThread], int]:
    filters = [ForumThread.is_active.is_(True)]
    if category_id is not None:
        filters.append(ForumThread.category_id == category_id)
    if author_id is not None:
        filters.append(ForumThread.author_id == author_id)
    if search:
        filters.append(or_(ForumThread.title.ilike(f"%{search}%"), ForumThread.content.ilike(f"%{search}%")))

    total = int((await db.execute(select(func.count(ForumThread.id)).where(*filters))).scalar_one() or 0)

    stmt = _apply_sort(select(ForumThread).where(*filters), sort if sort in SORT_KEYS else "recent")
    rows = await db.execute(stmt.offset(offset).limit(limit))
    return list(rows.scalars().all()), total


async def create_thread(
    db: AsyncSession,
    author_id: int,
    category_id: int,
    title: str,
    content: str,
    tags: List[str],
) -> ForumThread:
    now = utcnow()
    thread = ForumThread(
        title=title,
        content=content,
        tags=list(tags or []),
        author_id=author_id,
        category_id=category_id,
        # no replies yet: last activity is the thread itself
        last_reply_at=now,
        created_at=now,
        updated_at=now,
    )
    db.add(thread)
    await db.commit()
    await db.refresh(thread)
    return thread


async def increment_views(db: AsyncSession, thread_id: int) -> bool:
    """Atomic views += 1 on an active thread. False if no such thread."""
    result = await db.execute(
        update(ForumThread)
        .where(ForumThread.id == thread_id, ForumThread.is_active.is_(True))
        .values(views=ForumThread.views + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return bool(result.rowcount)


async def update_thread(db: AsyncSession, thread: ForumThread, values: dict) -> ForumThread:
    for key, value in values.items():
        setattr(thread, key, value)
    await db.commit()
    await db.refresh(thread)
    return thread


async def soft_delete_thread(db: AsyncSession, thread: ForumThread) -> bool:
    """Flip an active thread to inactive. False if it was already inactive."""
    result = await db.execute(
        update(ForumThread)
        .where(ForumThread.id == thread.id, ForumThread.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return bool(result.rowcount)
