"""
Recount every denormalized counter from the active rows and repair drift.

    python -m forum_api.services.reconcile [--dry-run]

Source of truth:
    thread.reply_count     active posts in the thread
    thread.last_reply_*    newest active post (else thread creation, no author)
    category.thread_count  active threads in the category
    category.post_count    active posts in active threads of the category
    user.post_count        active threads + active posts in active threads
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.models.forum_model import Category, ForumThread, ForumPost
from forum_api.models.user_model import User

logger = logging.getLogger(__name__)


@dataclass
class Drift:
    entity: str
    id: int
    field: str
    stored: Any
    actual: Any

    def to_dict(self) -> dict:
        d = asdict(self)
        for k in ("stored", "actual"):
            if isinstance(d[k], datetime):
                d[k] = d[k].isoformat()
        return d


def _grouped(rows) -> Dict[int, int]:
    return {int(k): int(v or 0) for k, v in rows if k is not None}


async def _active_post_counts_by_thread(db: AsyncSession) -> Dict[int, int]:
    rows = await db.execute(
        select(ForumPost.thread_id, func.count(ForumPost.id))
        .where(ForumPost.is_active.is_(True))
        .group_by(ForumPost.thread_id)
    )
    return _grouped(rows.all())


async def _latest_replies(db: AsyncSession) -> Dict[int, Tuple[Optional[int], datetime]]:
    # newest active post per thread; ties on created_at go to the higher id
    newest = (
        select(ForumPost.thread_id, func.max(ForumPost.created_at).label("at"))
        .where(ForumPost.is_active.is_(True))
        .group_by(ForumPost.thread_id)
        .subquery()
    )
    rows = await db.execute(
        select(ForumPost.thread_id, ForumPost.author_id, ForumPost.created_at)
        .join(newest, and_(ForumPost.thread_id == newest.c.thread_id, ForumPost.created_at == newest.c.at))
        .where(ForumPost.is_active.is_(True))
        .order_by(ForumPost.thread_id, ForumPost.id)
    )
    latest: Dict[int, Tuple[Optional[int], datetime]] = {}
    for thread_id, author_id, created_at in rows:
        latest[thread_id] = (author_id, created_at)
    return latest


async def _active_thread_counts_by_category(db: AsyncSession) -> Dict[int, int]:
    rows = await db.execute(
        select(ForumThread.category_id, func.count(ForumThread.id))
        .where(ForumThread.is_active.is_(True))
        .group_by(ForumThread.category_id)
    )
    return _grouped(rows.all())


async def _active_post_counts_by_category(db: AsyncSession) -> Dict[int, int]:
    rows = await db.execute(
        select(ForumThread.category_id, func.count(ForumPost.id))
        .join(ForumThread, ForumThread.id == ForumPost.thread_id)
        .where(ForumPost.is_active.is_(True), ForumThread.is_active.is_(True))
        .group_by(ForumThread.category_id)
    )
    return _grouped(rows.all())


async def _authored_counts_by_user(db: AsyncSession) -> Dict[int, int]:
    threads = _grouped((await db.execute(
        select(ForumThread.author_id, func.count(ForumThread.id))
        .where(ForumThread.is_active.is_(True))
        .group_by(ForumThread.author_id)
    )).all())
    posts = _grouped((await db.execute(
        select(ForumPost.author_id, func.count(ForumPost.id))
        .join(ForumThread, ForumThread.id == ForumPost.thread_id)
        .where(ForumPost.is_active.is_(True), ForumThread.is_active.is_(True))
        .group_by(ForumPost.author_id)
    )).all())
    out = dict(threads)
    for uid, n in posts.items():
        out[uid] = out.get(uid, 0) + n
    return out


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return a is b
    # sqlite hands back naive datetimes; compare wall-clock values
    return a.replace(tzinfo=None) == b.replace(tzinfo=None)


async def find_drift(db: AsyncSession) -> List[Drift]:
    drift: List[Drift] = []

    replies = await _active_post_counts_by_thread(db)
    latest = await _latest_replies(db)
    threads = (await db.execute(
        select(ForumThread.id, ForumThread.reply_count, ForumThread.last_reply_author_id,
               ForumThread.last_reply_at, ForumThread.created_at)
    )).all()
    for tid, reply_count, lr_author, lr_at, created_at in threads:
        actual = replies.get(tid, 0)
        if reply_count != actual:
            drift.append(Drift("thread", tid, "reply_count", reply_count, actual))
        want_author, want_at = latest.get(tid, (None, created_at))
        if lr_author != want_author:
            drift.append(Drift("thread", tid, "last_reply_author_id", lr_author, want_author))
        if not _same_instant(lr_at, want_at):
            drift.append(Drift("thread", tid, "last_reply_at", lr_at, want_at))

    cat_threads = await _active_thread_counts_by_category(db)
    cat_posts = await _active_post_counts_by_category(db)
    categories = (await db.execute(
        select(Category.id, Category.thread_count, Category.post_count)
    )).all()
    for cid, thread_count, post_count in categories:
        if thread_count != cat_threads.get(cid, 0):
            drift.append(Drift("category", cid, "thread_count", thread_count, cat_threads.get(cid, 0)))
        if post_count != cat_posts.get(cid, 0):
            drift.append(Drift("category", cid, "post_count", post_count, cat_posts.get(cid, 0)))

    authored = await _authored_counts_by_user(db)
    users = (await db.execute(select(User.id, User.post_count))).all()
    for uid, post_count in users:
        if post_count != authored.get(uid, 0):
            drift.append(Drift("user", uid, "post_count", post_count, authored.get(uid, 0)))

    return drift


_MODELS = {"thread": ForumThread, "category": Category, "user": User}


async def reconcile_counters(db: AsyncSession, apply: bool = True) -> List[Drift]:
    """Find drift and, unless ``apply`` is False, write the recounted values."""
    drift = await find_drift(db)
    if not drift:
        logger.info("Counter reconciliation: no drift")
        return drift

    for d in drift:
        logger.warning("Counter drift %s[%s].%s stored=%s actual=%s", d.entity, d.id, d.field, d.stored, d.actual)

    if apply:
        fixes: Dict[Tuple[str, int], Dict[str, Any]] = {}
        for d in drift:
            fixes.setdefault((d.entity, d.id), {})[d.field] = d.actual
        for (entity, entity_id), values in fixes.items():
            model = _MODELS[entity]
            await db.execute(
                update(model)
                .where(model.id == entity_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        await db.commit()
        logger.info("Counter reconciliation: repaired %d field(s) on %d row(s)", len(drift), len(fixes))
    return drift


async def _run(dry_run: bool) -> int:
    from forum_api.database import AsyncSessionLocal, engine

    try:
        async with AsyncSessionLocal() as session:
            drift = await reconcile_counters(session, apply=not dry_run)
    finally:
        await engine.dispose()
    for d in drift:
        print(f"{d.entity}[{d.id}].{d.field}: {d.stored} -> {d.actual}")
    return len(drift)


def main(argv: Optional[List[str]] = None) -> None:
    from forum_api.logging_config import configure_logging

    parser = argparse.ArgumentParser(description="Recount forum counters from active rows.")
    parser.add_argument("--dry-run", action="store_true", help="report drift without writing")
    args = parser.parse_args(argv)

    configure_logging()
    found = asyncio.run(_run(args.dry_run))
    print(f"{found} drifted field(s){' (dry run)' if args.dry_run else ' repaired'}")


if __name__ == "__main__":
    main()
