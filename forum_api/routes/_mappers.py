from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.models.forum_model import Category, ForumThread, ForumPost
from forum_api.models.user_model import User
from forum_api.schemas.forum_schemas import (
    CategoryBrief, LastReplyOut, ParentPostOut, PostOut, ThreadBrief, ThreadOut, UserPostOut,
)
from forum_api.schemas.user_schemas import UserBrief
from forum_api.services.likes import like_bits


async def _user_brief(db: AsyncSession, user_id: Optional[int]) -> Optional[UserBrief]:
    if not user_id:
        return None
    u = await db.get(User, user_id)
    return UserBrief.model_validate(u) if u else None


async def thread_to_out(t: ForumThread, db: AsyncSession, viewer: Optional[User] = None) -> ThreadOut:
    category = await db.get(Category, t.category_id)
    like_count, viewer_has = await like_bits(db, "thread", t.id, getattr(viewer, "id", None))

    return ThreadOut(
        id=t.id,
        title=t.title,
        content=t.content,
        tags=list(t.tags or []),
        author=await _user_brief(db, t.author_id),
        category=CategoryBrief.model_validate(category) if category else None,
        is_pinned=bool(t.is_pinned),
        is_locked=bool(t.is_locked),
        is_active=bool(t.is_active),
        views=t.views or 0,
        reply_count=t.reply_count or 0,
        last_reply=LastReplyOut(
            author=await _user_brief(db, t.last_reply_author_id),
            created_at=t.last_reply_at,
        ),
        like_count=like_count,
        has_liked=viewer_has,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


async def post_to_out(p: ForumPost, db: AsyncSession, viewer: Optional[User] = None) -> PostOut:
    parent = None
    if p.parent_post_id:
        pp = await db.get(ForumPost, p.parent_post_id)
        if pp:
            parent = ParentPostOut(id=pp.id, content=pp.content, author_id=pp.author_id)

    like_count, viewer_has = await like_bits(db, "post", p.id, getattr(viewer, "id", None))

    return PostOut(
        id=p.id,
        content=p.content,
        thread_id=p.thread_id,
        author=await _user_brief(db, p.author_id),
        parent_post=parent,
        is_active=bool(p.is_active),
        is_edited=bool(p.is_edited),
        edited_at=p.edited_at,
        like_count=like_count,
        has_liked=viewer_has,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


async def user_post_to_out(p: ForumPost, db: AsyncSession) -> UserPostOut:
    """Post plus the title of its thread, for profile listings."""
    base = await post_to_out(p, db)
    t = await db.get(ForumThread, p.thread_id)
    return UserPostOut(
        **base.model_dump(),
        thread=ThreadBrief(id=t.id, title=t.title) if t else None,
    )
