"""
Like toggling over the ``thread_likes`` / ``post_likes`` tables.

One row per (entity, user). A toggle deletes the viewer's row if present,
otherwise inserts it; the count is always a ``COUNT(*)`` over the table, never
a stored column.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.models.like_model import ThreadLike, PostLike

logger = logging.getLogger(__name__)

# target -> (like model, fk column name)
LIKE_TARGETS = {
    "thread": (ThreadLike, "thread_id"),
    "post": (PostLike, "post_id"),
}


def _target(kind: str):
    try:
        model, fk = LIKE_TARGETS[kind]
    except KeyError:
        raise ValueError(f"Unknown like target: {kind!r}")
    return model, getattr(model, fk), fk


async def like_count(db: AsyncSession, kind: str, entity_id: int) -> int:
    model, fk_col, _ = _target(kind)
    stmt = select(func.count(model.id)).where(fk_col == entity_id)
    return int((await db.execute(stmt)).scalar_one() or 0)


async def has_liked(db: AsyncSession, kind: str, entity_id: int, user_id: Optional[int]) -> bool:
    if not user_id:
        return False
    model, fk_col, _ = _target(kind)
    stmt = select(func.count(model.id)).where(fk_col == entity_id, model.user_id == user_id)
    return (await db.execute(stmt)).scalar_one() > 0


async def like_bits(db: AsyncSession, kind: str, entity_id: int, viewer_id: Optional[int]) -> Tuple[int, bool]:
    """(like count, whether the viewer is among the likers)"""
    return await like_count(db, kind, entity_id), await has_liked(db, kind, entity_id, viewer_id)


async def toggle_like(db: AsyncSession, kind: str, entity_id: int, user_id: int) -> Tuple[bool, int]:
    """
    Flip the (entity, user) like state. Returns (liked, like count).

    Two concurrent toggles by the same user race; whichever commits last wins.
    An insert that loses to a concurrent insert hits the unique constraint and
    is reported as liked, since the row exists either way.
    """
    model, fk_col, fk_name = _target(kind)

    removed = await db.execute(
        delete(model).where(fk_col == entity_id, model.user_id == user_id)
    )
    if removed.rowcount:
        await db.commit()
        liked = False
    else:
        db.add(model(**{fk_name: entity_id, "user_id": user_id}))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("Concurrent like on %s %s by user %s", kind, entity_id, user_id)
        liked = True

    return liked, await like_count(db, kind, entity_id)
