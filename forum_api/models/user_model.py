from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, func, text

from forum_api.database import Base
from forum_api.models.base import utcnow

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=False)
    email = Column(String(320), unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default=ROLE_USER, server_default=ROLE_USER)  # user or admin

    bio = Column(Text, nullable=True)
    avatar = Column(String(1024), nullable=True)
    reputation = Column(Integer, nullable=False, default=0, server_default="0")

    # denormalized: active threads + active posts authored
    post_count = Column(Integer, nullable=False, default=0, server_default="0")

    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)
