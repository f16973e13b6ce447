from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    func,
    Boolean,
    JSON,
    Index,
    text
)
from forum_api.database import Base
from forum_api.models.base import utcnow


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        Index("ix_categories_active_order", "is_active", "order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(200), nullable=False)
    color = Column(String(7), nullable=False, default="#3B82F6", server_default="#3B82F6")
    icon = Column(String(64), nullable=False, default="MessageSquare", server_default="MessageSquare")
    order = Column(Integer, nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    # denormalized counters for faster category list
    thread_count = Column(Integer, nullable=False, default=0, server_default="0")
    post_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)


class ForumThread(Base):
    __tablename__ = "forum_threads"
    __table_args__ = (
        Index("ix_forum_threads_category_pinned", "category_id", "is_pinned", "created_at"),
        Index("ix_forum_threads_active_last_reply", "is_active", "is_pinned", "last_reply_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    content = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)

    author_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    category_id = Column(
        Integer,
        ForeignKey("categories.id"),
        nullable=False,
        index=True,
    )

    is_pinned = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_locked = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    views = Column(Integer, nullable=False, default=0, server_default="0")

    # denormalized: active posts in this thread
    reply_count = Column(Integer, nullable=False, default=0, server_default="0")
    # best-effort cache of the newest reply; not recomputed on delete
    last_reply_author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    last_reply_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)


class ForumPost(Base):
    __tablename__ = "forum_posts"
    __table_args__ = (
        Index("ix_forum_posts_thread_created", "thread_id", "created_at"),
        Index("ix_forum_posts_author_created", "author_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    thread_id = Column(
        Integer,
        ForeignKey("forum_threads.id"),
        nullable=False,
        index=True,
    )
    author_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    # reply-to reference only; deleting the parent leaves children alone
    parent_post_id = Column(
        Integer,
        ForeignKey("forum_posts.id"),
        nullable=True,
        index=True,
    )

    content = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    is_edited = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    edited_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)


class PostEdit(Base):
    """Append-only snapshot of a post's content before an edit."""
    __tablename__ = "post_edits"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(
        Integer,
        ForeignKey("forum_posts.id"),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False)
    edited_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
