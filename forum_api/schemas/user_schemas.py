from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from forum_api.schemas.common import CamelModel, PaginationOut


class RegisterIn(CamelModel):
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class LoginIn(CamelModel):
    # username or email
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdateIn(CamelModel):
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar: Optional[str] = Field(default=None, max_length=1024)


class UserBrief(CamelModel):
    id: int
    username: str
    avatar: Optional[str] = None
    role: str


class UserOut(UserBrief):
    bio: Optional[str] = None
    reputation: int = 0
    post_count: int = 0
    created_at: datetime


class AuthOut(CamelModel):
    user: UserOut
    token: str


class UserPageOut(CamelModel):
    users: List[UserOut]
    pagination: PaginationOut
