"""
Denormalized counter maintenance.

Every mutating forum event maps to a fixed, ordered list of ``CounterStep``s.
A step is one single-row ``UPDATE ... SET col = col + delta`` (optionally with
plain column assignments, e.g. ``last_reply_*``) and is committed on its own
after the primary write has committed:

    Thread created   -> category.thread_count +1, author.post_count +1
    Thread deleted   -> category.thread_count -1, author.post_count -1
    Post created     -> thread.reply_count +1 (+ last_reply), author.post_count +1,
                        category.post_count +1
    Post deleted     -> thread.reply_count -1, author.post_count -1,
                        category.post_count -1

Replies under a deleted thread are not decremented, and ``last_reply`` is not
recomputed when a post goes away. ``services.reconcile`` recounts both from
the active rows.

There is no cross-row transaction. If step k fails, steps before k stay
committed, the rest are skipped and ``CounterSyncError`` is raised so the
request ends in a 500. Nothing is retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.errors import CounterSyncError
from forum_api.models.forum_model import Category, ForumThread, ForumPost
from forum_api.models.user_model import User

logger = logging.getLogger(__name__)

THREAD_CREATED = "thread_created"
THREAD_DELETED = "thread_deleted"
POST_CREATED = "post_created"
POST_DELETED = "post_deleted"


@dataclass(frozen=True)
class CounterStep:
    model: Any
    entity_id: int
    deltas: Dict[str, int] = field(default_factory=dict)
    assign: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        parts = [f"{col}{delta:+d}" for col, delta in self.deltas.items()]
        parts += [f"{col}=" for col in self.assign]
        return f"{self.model.__tablename__}[{self.entity_id}].{','.join(parts)}"

    def statement(self):
        values = {col: getattr(self.model, col) + delta for col, delta in self.deltas.items()}
        values.update(self.assign)
        return (
            update(self.model)
            .where(self.model.id == self.entity_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )


# ------------------------------
# event -> steps
# ------------------------------
def thread_created_steps(thread: ForumThread) -> List[CounterStep]:
    return [
        CounterStep(Category, thread.category_id, {"thread_count": 1}),
        CounterStep(User, thread.author_id, {"post_count": 1}),
    ]


def thread_deleted_steps(thread: ForumThread) -> List[CounterStep]:
    # The author step mirrors the creation increment so user.post_count keeps
    # counting active threads. Replies are not cascaded.
    return [
        CounterStep(Category, thread.category_id, {"thread_count": -1}),
        CounterStep(User, thread.author_id, {"post_count": -1}),
    ]


def post_created_steps(post: ForumPost, thread: ForumThread) -> List[CounterStep]:
    return [
        CounterStep(
            ForumThread,
            thread.id,
            {"reply_count": 1},
            {"last_reply_author_id": post.author_id, "last_reply_at": post.created_at},
        ),
        CounterStep(User, post.author_id, {"post_count": 1}),
        CounterStep(Category, thread.category_id, {"post_count": 1}),
    ]


def post_deleted_steps(post: ForumPost, thread: ForumThread) -> List[CounterStep]:
    return [
        CounterStep(ForumThread, thread.id, {"reply_count": -1}),
        CounterStep(User, post.author_id, {"post_count": -1}),
        CounterStep(Category, thread.category_id, {"post_count": -1}),
    ]


# ------------------------------
# execution
# ------------------------------
async def _execute_step(db: AsyncSession, step: CounterStep) -> None:
    await db.execute(step.statement())


async def apply_counter_steps(db: AsyncSession, event: str, steps: List[CounterStep]) -> List[str]:
    """
    Run ``steps`` in order, committing after each one.

    Returns the labels of the applied steps. On the first failure the session
    is rolled back and ``CounterSyncError`` is raised with the applied and
    pending labels; already-committed steps are left in place.
    """
    applied: List[str] = []
    for i, step in enumerate(steps):
        try:
            await _execute_step(db, step)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            pending = [s.label for s in steps[i:]]
            logger.error(
                "Counter drift after %s: applied=%s pending=%s error=%r",
                event, applied, pending, exc,
            )
            raise CounterSyncError(event, applied, pending, exc) from exc
        applied.append(step.label)
        logger.debug("%s: %s", event, step.label)
    return applied


async def on_thread_created(db: AsyncSession, thread: ForumThread) -> List[str]:
    return await apply_counter_steps(db, THREAD_CREATED, thread_created_steps(thread))


async def on_thread_deleted(db: AsyncSession, thread: ForumThread) -> List[str]:
    return await apply_counter_steps(db, THREAD_DELETED, thread_deleted_steps(thread))


async def on_post_created(db: AsyncSession, post: ForumPost, thread: ForumThread) -> List[str]:
    return await apply_counter_steps(db, POST_CREATED, post_created_steps(post, thread))


async def on_post_deleted(db: AsyncSession, post: ForumPost, thread: ForumThread) -> List[str]:
    return await apply_counter_steps(db, POST_DELETED, post_deleted_steps(post, thread))
