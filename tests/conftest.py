"""Pytest fixtures for the forum API tests."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from forum_api.database import Base, get_async_session
from forum_api.main import app
from forum_api.models.forum_model import Category, ForumThread, ForumPost
from forum_api.models.like_model import ThreadLike, PostLike  # noqa: F401  (registers tables)
from forum_api.models.user_model import User, ROLE_ADMIN
from forum_api.repositories.users import create_user
from forum_api.utils.token_utils import create_access_token


@dataclass
class ForumUser:
    id: int
    username: str
    token: str

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
async def session_factory() -> AsyncIterator[sessionmaker]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def client(session_factory: sessionmaker) -> AsyncIterator[httpx.AsyncClient]:
    async def _session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory: sessionmaker) -> Callable:
    async def _make(username: str, role: Optional[str] = None) -> ForumUser:
        async with session_factory() as db:
            user = await create_user(db, username, f"{username}@example.com", "password123")
            if role:
                user.role = role
                await db.commit()
            return ForumUser(id=user.id, username=user.username, token=create_access_token(user))

    return _make


@pytest.fixture
async def admin(make_user: Callable) -> ForumUser:
    return await make_user("admin", role=ROLE_ADMIN)


@pytest.fixture
async def alice(make_user: Callable) -> ForumUser:
    return await make_user("alice")


@pytest.fixture
async def bob(make_user: Callable) -> ForumUser:
    return await make_user("bob")


class ForumApi:
    """Thin helpers over the HTTP API plus direct row reads for assertions."""

    def __init__(self, client: httpx.AsyncClient, session_factory: sessionmaker):
        self.client = client
        self.session_factory = session_factory

    async def create_category(self, actor: ForumUser, name: str = "General", **extra: Any) -> dict:
        resp = await self.client.post(
            "/api/categories",
            json={"name": name, "description": f"{name} discussion", **extra},
            headers=actor.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    async def create_thread(self, actor: ForumUser, category_id: int, title: str = "Hello", **extra: Any) -> dict:
        resp = await self.client.post(
            "/api/threads",
            json={"title": title, "content": f"{title} body", "categoryId": category_id, **extra},
            headers=actor.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    async def create_post(self, actor: ForumUser, thread_id: int, content: str = "A reply", **extra: Any) -> dict:
        resp = await self.client.post(
            "/api/posts",
            json={"content": content, "threadId": thread_id, **extra},
            headers=actor.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    async def delete_post(self, actor: ForumUser, post_id: int) -> httpx.Response:
        return await self.client.delete(f"/api/posts/{post_id}", headers=actor.headers)

    async def delete_thread(self, actor: ForumUser, thread_id: int) -> httpx.Response:
        return await self.client.delete(f"/api/threads/{thread_id}", headers=actor.headers)

    async def row(self, model: Any, entity_id: int) -> Any:
        async with self.session_factory() as db:
            return await db.get(model, entity_id)

    async def category(self, category_id: int) -> Category:
        return await self.row(Category, category_id)

    async def thread(self, thread_id: int) -> ForumThread:
        return await self.row(ForumThread, thread_id)

    async def post(self, post_id: int) -> ForumPost:
        return await self.row(ForumPost, post_id)

    async def user(self, user_id: int) -> User:
        return await self.row(User, user_id)


@pytest.fixture
def api(client: httpx.AsyncClient, session_factory: sessionmaker) -> ForumApi:
    return ForumApi(client, session_factory)
