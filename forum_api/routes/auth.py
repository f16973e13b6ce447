import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.deps.auth import get_current_user
from forum_api.errors import AuthError, envelope
from forum_api.models.user_model import User
from forum_api.repositories.users import create_user, find_by_login
from forum_api.schemas.common import Envelope
from forum_api.schemas.user_schemas import AuthOut, LoginIn, RegisterIn, UserOut
from forum_api.utils.token_utils import create_access_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=Envelope[AuthOut], status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, db: AsyncSession = Depends(get_async_session)):
    user = await create_user(db, payload.username, str(payload.email), payload.password)
    logger.info("Registered user %s (%s)", user.id, user.username)
    data = AuthOut(user=UserOut.model_validate(user), token=create_access_token(user))
    return envelope(True, data, "User registered successfully")


@router.post("/login", response_model=Envelope[AuthOut])
async def login(payload: LoginIn, db: AsyncSession = Depends(get_async_session)):
    user = await find_by_login(db, payload.username)
    # same message for unknown user and wrong password
    if not user or not user.is_active or not verify_password(payload.password, user.password):
        raise AuthError("Invalid credentials")
    data = AuthOut(user=UserOut.model_validate(user), token=create_access_token(user))
    return envelope(True, data, "Login successful")


@router.get("/me", response_model=Envelope[UserOut])
async def me(user: User = Depends(get_current_user)):
    return envelope(True, UserOut.model_validate(user))
