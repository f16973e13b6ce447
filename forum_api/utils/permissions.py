# forum_api/utils/permissions.py
"""
Authorization predicates. Pure functions over already-loaded rows; routes
call them before any write and raise ForbiddenError on a False result.
"""
from __future__ import annotations

from typing import Any, Optional

from forum_api.models.user_model import ROLE_ADMIN


def is_admin(user: Optional[Any]) -> bool:
    return (getattr(user, "role", "") or "").lower() == ROLE_ADMIN


def can_mutate(actor: Optional[Any], entity: Any) -> bool:
    """Owner-or-admin check for threads and posts."""
    if actor is None:
        return False
    if is_admin(actor):
        return True
    return getattr(entity, "author_id", None) == getattr(actor, "id", object())


def can_post(actor: Optional[Any], thread: Any) -> bool:
    # a locked thread takes no new replies, admins included
    if actor is None:
        return False
    return not bool(getattr(thread, "is_locked", False))


def can_edit_post(actor: Optional[Any], post: Any, thread: Any) -> bool:
    if not can_mutate(actor, post):
        return False
    return is_admin(actor) or not bool(getattr(thread, "is_locked", False))
