# forum_api/deps/auth.py
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.errors import AuthError, ForbiddenError
from forum_api.models.user_model import User
from forum_api.utils.permissions import is_admin
from forum_api.utils.token_utils import decode_user_id

# auto_error=False: missing headers become our own 401 envelope (or None for optional auth)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def _user_from_token(token: Optional[str], db: AsyncSession) -> Optional[User]:
    if not token:
        return None
    user_id = decode_user_id(token)
    if user_id is None:
        return None
    user = await db.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    if not token:
        raise AuthError("Not authenticated")
    user = await _user_from_token(token, db)
    if user is None:
        raise AuthError()
    return user


async def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_async_session),
) -> Optional[User]:
    """Viewer for public GETs; a bad token is treated as anonymous."""
    return await _user_from_token(token, db)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Requires the authenticated user to have role=admin.
    Raises 403 if not an admin.
    """
    if not is_admin(user):
        raise ForbiddenError("Admin access required")
    return user
