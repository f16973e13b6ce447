from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import ConfigDict, Field

from forum_api.config import DEFAULT_CATEGORY_COLOR, DEFAULT_CATEGORY_ICON
from forum_api.schemas.common import CamelModel, PaginationOut
from forum_api.schemas.user_schemas import UserBrief, UserOut

HEX_COLOR = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"

Tag = Annotated[str, Field(min_length=1, max_length=30)]


class _TrimmedIn(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# ------------------------------
# categories
# ------------------------------
class CategoryCreateIn(_TrimmedIn):
    name: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1, max_length=200)
    color: str = Field(default=DEFAULT_CATEGORY_COLOR, pattern=HEX_COLOR)
    icon: str = Field(default=DEFAULT_CATEGORY_ICON, min_length=1, max_length=64)
    order: int = 0


class CategoryUpdateIn(_TrimmedIn):
    # All optional so the client can send only what changed
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, min_length=1, max_length=64)
    order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryBrief(CamelModel):
    id: int
    name: str
    color: str


class CategoryOut(CategoryBrief):
    description: str
    icon: str
    order: int
    thread_count: int
    post_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ------------------------------
# threads
# ------------------------------
class ThreadCreateIn(_TrimmedIn):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=10000)
    category_id: int
    tags: List[Tag] = Field(default_factory=list)


class ThreadUpdateIn(_TrimmedIn):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=10000)
    tags: Optional[List[Tag]] = None


class LockToggleIn(CamelModel):
    locked: bool


class PinToggleIn(CamelModel):
    pinned: bool


class LastReplyOut(CamelModel):
    author: Optional[UserBrief] = None
    created_at: datetime


class ThreadOut(CamelModel):
    id: int
    title: str
    content: str
    tags: List[str] = []
    author: Optional[UserBrief] = None
    category: Optional[CategoryBrief] = None
    is_pinned: bool = False
    is_locked: bool = False
    is_active: bool = True
    views: int = 0
    reply_count: int = 0
    last_reply: Optional[LastReplyOut] = None
    like_count: int = 0
    has_liked: bool = False
    created_at: datetime
    updated_at: datetime


class ThreadPageOut(CamelModel):
    threads: List[ThreadOut]
    pagination: PaginationOut


# ------------------------------
# posts
# ------------------------------
class PostCreateIn(CamelModel):
    content: str = Field(min_length=1, max_length=5000)
    thread_id: int
    parent_post_id: Optional[int] = None


class PostUpdateIn(CamelModel):
    content: str = Field(min_length=1, max_length=5000)


class ParentPostOut(CamelModel):
    id: int
    content: str
    author_id: int


class PostOut(CamelModel):
    id: int
    content: str
    thread_id: int
    author: Optional[UserBrief] = None
    parent_post: Optional[ParentPostOut] = None
    is_active: bool = True
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    like_count: int = 0
    has_liked: bool = False
    created_at: datetime
    updated_at: datetime


class PostPageOut(CamelModel):
    posts: List[PostOut]
    pagination: PaginationOut


class PostEditOut(CamelModel):
    content: str
    edited_at: datetime


class PostHistoryOut(CamelModel):
    post_id: int
    is_active: bool
    content: str
    edit_history: List[PostEditOut]


class LikeOut(CamelModel):
    liked: bool
    like_count: int


# ------------------------------
# users / admin
# ------------------------------
class ThreadBrief(CamelModel):
    id: int
    title: str


class UserPostOut(PostOut):
    thread: Optional[ThreadBrief] = None


class UserPostPageOut(CamelModel):
    posts: List[UserPostOut]
    pagination: PaginationOut


class ProfileStatsOut(CamelModel):
    threads_count: int
    posts_count: int


class ProfileOut(CamelModel):
    user: UserOut
    recent_threads: List[ThreadOut]
    recent_posts: List[UserPostOut]
    stats: ProfileStatsOut


class DriftOut(CamelModel):
    entity: str
    id: int
    field: str
    stored: Any = None
    actual: Any = None


class ReconcileOut(CamelModel):
    dry_run: bool
    drift_count: int
    drift: List[DriftOut]
