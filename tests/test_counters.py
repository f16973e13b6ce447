"""Tests for denormalized counter maintenance across forum events."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import SQLAlchemyError

from forum_api.models.forum_model import Category
from forum_api.models.user_model import User
from forum_api.repositories.posts import get_post, soft_delete_post
from forum_api.repositories.threads import get_thread, soft_delete_thread
from forum_api.services import counters
from forum_api.services.counters import (
    CounterStep,
    post_created_steps,
    post_deleted_steps,
    thread_created_steps,
)


class TestCounterSteps:
    """Step lists are fixed per event and ordered."""

    def test_thread_created_steps(self) -> None:
        thread = type("T", (), {"id": 7, "category_id": 3, "author_id": 9})()
        steps = thread_created_steps(thread)

        assert [s.model for s in steps] == [Category, User]
        assert steps[0].entity_id == 3
        assert steps[0].deltas == {"thread_count": 1}
        assert steps[1].entity_id == 9

    def test_post_created_updates_thread_first(self) -> None:
        thread = type("T", (), {"id": 7, "category_id": 3, "author_id": 9})()
        post = type("P", (), {"author_id": 4, "created_at": None})()
        steps = post_created_steps(post, thread)

        assert steps[0].deltas == {"reply_count": 1}
        assert steps[0].assign["last_reply_author_id"] == 4
        assert [s.entity_id for s in steps] == [7, 4, 3]

    def test_post_deleted_is_inverse_of_created(self) -> None:
        thread = type("T", (), {"id": 7, "category_id": 3, "author_id": 9})()
        post = type("P", (), {"author_id": 4, "created_at": None})()
        created = post_created_steps(post, thread)
        deleted = post_deleted_steps(post, thread)

        for up, down in zip(created, deleted):
            assert up.model is down.model
            assert up.entity_id == down.entity_id
            assert {k: -v for k, v in up.deltas.items()} == down.deltas

    def test_label(self) -> None:
        step = CounterStep(Category, 2, {"post_count": -1})
        assert step.label == "categories[2].post_count-1"


class TestCounterLifecycle:
    """Counters observed through the HTTP API."""

    async def test_full_scenario(self, api, admin, alice, bob) -> None:
        category = await api.create_category(admin, "General")
        thread = await api.create_thread(alice, category["id"])

        assert (await api.category(category["id"])).thread_count == 1
        assert (await api.user(alice.id)).post_count == 1

        post = await api.create_post(bob, thread["id"])

        t = await api.thread(thread["id"])
        assert t.reply_count == 1
        assert t.last_reply_author_id == bob.id
        assert (await api.category(category["id"])).post_count == 1
        assert (await api.user(bob.id)).post_count == 1

        resp = await api.delete_post(bob, post["id"])
        assert resp.status_code == 200

        assert (await api.thread(thread["id"])).reply_count == 0
        assert (await api.category(category["id"])).post_count == 0
        assert (await api.user(bob.id)).post_count == 0

    async def test_create_then_delete_restores_reply_count(self, api, admin, alice) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])
        posts = [await api.create_post(alice, thread["id"], f"reply {i}") for i in range(3)]

        assert (await api.thread(thread["id"])).reply_count == 3

        for p in posts:
            assert (await api.delete_post(alice, p["id"])).status_code == 200

        assert (await api.thread(thread["id"])).reply_count == 0
        assert (await api.category(category["id"])).post_count == 0
        # the thread itself still counts toward its author
        assert (await api.user(alice.id)).post_count == 1

    async def test_thread_only_touches_its_own_category(self, api, admin, alice) -> None:
        news = await api.create_category(admin, "News")
        misc = await api.create_category(admin, "Misc")

        await api.create_thread(alice, news["id"])

        assert (await api.category(news["id"])).thread_count == 1
        assert (await api.category(misc["id"])).thread_count == 0

    async def test_created_thread_reports_counters(self, api, admin, alice) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])

        assert thread["replyCount"] == 0
        assert thread["author"]["id"] == alice.id
        assert thread["category"]["name"] == "General"
        assert thread["lastReply"]["author"] is None

    async def test_thread_delete_decrements_category_and_author(self, api, admin, alice, bob) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])
        await api.create_post(bob, thread["id"])

        resp = await api.delete_thread(alice, thread["id"])
        assert resp.status_code == 200

        assert (await api.category(category["id"])).thread_count == 0
        assert (await api.user(alice.id)).post_count == 0
        # replies under the thread are left for reconciliation
        assert (await api.category(category["id"])).post_count == 1
        assert (await api.user(bob.id)).post_count == 1

    async def test_second_delete_is_not_found(self, api, admin, alice) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])
        post = await api.create_post(alice, thread["id"])

        assert (await api.delete_post(alice, post["id"])).status_code == 200
        assert (await api.delete_post(alice, post["id"])).status_code == 404

        assert (await api.thread(thread["id"])).reply_count == 0
        assert (await api.category(category["id"])).post_count == 0

    async def test_locked_thread_rejects_post_without_counter_change(self, api, client, admin, alice) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])

        resp = await client.patch(
            f"/api/threads/{thread['id']}/lock", json={"locked": True}, headers=admin.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["isLocked"] is True

        for actor in (alice, admin):
            resp = await client.post(
                "/api/posts", json={"content": "late", "threadId": thread["id"]}, headers=actor.headers,
            )
            assert resp.status_code == 403
            assert resp.json()["message"] == "Thread is locked"

        assert (await api.thread(thread["id"])).reply_count == 0
        assert (await api.category(category["id"])).post_count == 0
        assert (await api.user(alice.id)).post_count == 1


class TestCounterFailure:
    """A failing step leaves earlier steps applied and the request fails."""

    @pytest.fixture
    def break_category_steps(self, monkeypatch):
        real = counters._execute_step

        async def flaky(db, step):
            if step.model is Category:
                raise SQLAlchemyError("category row unavailable")
            await real(db, step)

        def arm(on: bool = True) -> None:
            monkeypatch.setattr(counters, "_execute_step", flaky if on else real)

        return arm

    async def test_partial_application_then_reconcile(
        self, api, client, admin, alice, bob, break_category_steps,
    ) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])

        break_category_steps()
        resp = await client.post(
            "/api/posts", json={"content": "hi", "threadId": thread["id"]}, headers=bob.headers,
        )
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Server error"

        # the post and the steps before the failure are committed
        assert (await api.thread(thread["id"])).reply_count == 1
        assert (await api.user(bob.id)).post_count == 1
        assert (await api.category(category["id"])).post_count == 0

        break_category_steps(False)
        resp = await client.post("/api/admin/reconcile", headers=admin.headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["dryRun"] is False
        assert {"entity": "category", "id": category["id"], "field": "post_count",
                "stored": 0, "actual": 1} in data["drift"]

        assert (await api.category(category["id"])).post_count == 1

    async def test_failure_on_first_step_applies_nothing(
        self, api, client, admin, alice, break_category_steps,
    ) -> None:
        category = await api.create_category(admin)

        break_category_steps()
        resp = await client.post(
            "/api/threads",
            json={"title": "Broken", "content": "body", "categoryId": category["id"]},
            headers=alice.headers,
        )
        assert resp.status_code == 500

        assert (await api.category(category["id"])).thread_count == 0
        assert (await api.user(alice.id)).post_count == 0


class TestInterleavedDeletes:
    """Two requests that both saw a row active decrement its counters once."""

    async def test_post_deleted_from_two_sessions(self, api, admin, alice, bob, session_factory) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])
        post = await api.create_post(bob, thread["id"])

        async with session_factory() as first, session_factory() as second:
            loaded = [await get_post(db, post["id"]) for db in (first, second)]
            assert all(p is not None for p in loaded)

            outcomes = []
            for db, p in zip((first, second), loaded):
                flipped = await soft_delete_post(db, p)
                if flipped:
                    parent = await get_thread(db, p.thread_id)
                    await counters.on_post_deleted(db, p, parent)
                outcomes.append(flipped)

        assert outcomes == [True, False]
        assert (await api.thread(thread["id"])).reply_count == 0
        assert (await api.category(category["id"])).post_count == 0
        assert (await api.user(bob.id)).post_count == 0

    async def test_thread_deleted_from_two_sessions(self, api, admin, alice, session_factory) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])

        async with session_factory() as first, session_factory() as second:
            loaded = [await get_thread(db, thread["id"]) for db in (first, second)]
            assert all(t is not None for t in loaded)

            outcomes = []
            for db, t in zip((first, second), loaded):
                flipped = await soft_delete_thread(db, t)
                if flipped:
                    await counters.on_thread_deleted(db, t)
                outcomes.append(flipped)

        assert outcomes == [True, False]
        assert (await api.category(category["id"])).thread_count == 0
        assert (await api.user(alice.id)).post_count == 0


class TestPostsUnderDeletedThread:
    """Replies under a deleted thread cannot be mutated or re-counted."""

    async def test_reply_mutations_are_not_found(self, api, client, admin, alice, bob) -> None:
        category = await api.create_category(admin)
        thread = await api.create_thread(alice, category["id"])
        post = await api.create_post(bob, thread["id"])

        assert (await api.delete_thread(alice, thread["id"])).status_code == 200
        assert (await client.post("/api/admin/reconcile", headers=admin.headers)).status_code == 200
        assert (await api.category(category["id"])).post_count == 0
        assert (await api.user(bob.id)).post_count == 0

        assert (await api.delete_post(bob, post["id"])).status_code == 404
        resp = await client.put(f"/api/posts/{post['id']}", json={"content": "edit"}, headers=bob.headers)
        assert resp.status_code == 404
        assert (await client.post(f"/api/posts/{post['id']}/like", headers=alice.headers)).status_code == 404

        assert (await api.category(category["id"])).post_count == 0
        assert (await api.user(bob.id)).post_count == 0
        stored = await api.post(post["id"])
        assert stored.is_active is True
        assert stored.content == "A reply"

        # the author can still read the post's history
        resp = await client.get(f"/api/posts/{post['id']}/history", headers=bob.headers)
        assert resp.status_code == 200
