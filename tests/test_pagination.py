"""Tests for pagination metadata and thread listing order."""

from __future__ import annotations

import pytest

from forum_api.utils.pagination import PageParams, pagination_meta


class TestPaginationMeta:
    @pytest.mark.parametrize(
        "page,limit,total,has_next,has_prev,total_pages",
        [
            (1, 10, 0, False, False, 0),
            (1, 10, 10, False, False, 1),
            (1, 10, 11, True, False, 2),
            (2, 10, 11, False, True, 2),
            (3, 5, 30, True, True, 6),
            (6, 5, 30, False, True, 6),
        ],
    )
    def test_flags(self, page, limit, total, has_next, has_prev, total_pages) -> None:
        meta = pagination_meta(page, limit, total)

        assert meta["has_next"] is has_next
        assert meta["has_prev"] is has_prev
        assert meta["total_pages"] == total_pages
        assert meta["total_items"] == total
        assert meta["current_page"] == page

    def test_offset(self) -> None:
        assert PageParams(page=1, limit=20).offset == 0
        assert PageParams(page=3, limit=20).offset == 40


class TestThreadListing:
    async def test_pages_through_threads(self, api, client, admin, alice) -> None:
        category = await api.create_category(admin)
        for i in range(5):
            await api.create_thread(alice, category["id"], title=f"Thread {i}")

        first = (await client.get("/api/threads", params={"page": 1, "limit": 2})).json()["data"]
        assert len(first["threads"]) == 2
        assert first["pagination"] == {
            "currentPage": 1, "totalPages": 3, "totalItems": 5, "hasNext": True, "hasPrev": False,
        }

        last = (await client.get("/api/threads", params={"page": 3, "limit": 2})).json()["data"]
        assert len(last["threads"]) == 1
        assert last["pagination"]["hasNext"] is False
        assert last["pagination"]["hasPrev"] is True

    async def test_page_past_the_end_is_empty(self, api, client, admin, alice) -> None:
        category = await api.create_category(admin)
        await api.create_thread(alice, category["id"])

        data = (await client.get("/api/threads", params={"page": 4, "limit": 10})).json()["data"]
        assert data["threads"] == []
        assert data["pagination"]["hasNext"] is False

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 1000}])
    async def test_rejects_bad_page_params(self, client, params) -> None:
        resp = await client.get("/api/threads", params=params)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Validation failed"

    async def test_filters_by_category_and_search(self, api, client, admin, alice) -> None:
        news = await api.create_category(admin, "News")
        misc = await api.create_category(admin, "Misc")
        await api.create_thread(alice, news["id"], title="Release notes")
        await api.create_thread(alice, misc["id"], title="Random chatter")

        data = (await client.get("/api/threads", params={"category": news["id"]})).json()["data"]
        assert [t["title"] for t in data["threads"]] == ["Release notes"]

        data = (await client.get("/api/threads", params={"search": "chatter"})).json()["data"]
        assert [t["title"] for t in data["threads"]] == ["Random chatter"]

    async def test_recent_sort_puts_pinned_first(self, api, client, admin, alice) -> None:
        category = await api.create_category(admin)
        older = await api.create_thread(alice, category["id"], title="Older")
        await api.create_thread(alice, category["id"], title="Newer")
        await client.patch(f"/api/threads/{older['id']}/pin", json={"pinned": True}, headers=admin.headers)

        data = (await client.get("/api/threads")).json()["data"]
        assert [t["title"] for t in data["threads"]] == ["Older", "Newer"]
        assert data["threads"][0]["isPinned"] is True

    async def test_replies_and_likes_sorts(self, api, client, admin, alice, bob) -> None:
        category = await api.create_category(admin)
        quiet = await api.create_thread(alice, category["id"], title="Quiet")
        busy = await api.create_thread(alice, category["id"], title="Busy")
        loved = await api.create_thread(alice, category["id"], title="Loved")

        await api.create_post(bob, busy["id"])
        await api.create_post(bob, busy["id"])
        await client.post(f"/api/threads/{loved['id']}/like", headers=bob.headers)

        by_replies = (await client.get("/api/threads", params={"sort": "replies"})).json()["data"]
        assert by_replies["threads"][0]["id"] == busy["id"]

        by_likes = (await client.get("/api/threads", params={"sort": "likes"})).json()["data"]
        assert by_likes["threads"][0]["id"] == loved["id"]
        assert {t["id"] for t in by_likes["threads"]} == {quiet["id"], busy["id"], loved["id"]}

    async def test_popular_sort_follows_views(self, api, client, admin, alice) -> None:
        category = await api.create_category(admin)
        await api.create_thread(alice, category["id"], title="Ignored")
        watched = await api.create_thread(alice, category["id"], title="Watched")
        await api.create_thread(alice, category["id"], title="Newest")

        for _ in range(3):
            await client.get(f"/api/threads/{watched['id']}")

        data = (await client.get("/api/threads", params={"sort": "popular"})).json()["data"]
        assert data["threads"][0]["id"] == watched["id"]
        assert data["threads"][0]["views"] == 3

    async def test_deleted_threads_are_not_listed(self, api, client, admin, alice) -> None:
        category = await api.create_category(admin)
        keep = await api.create_thread(alice, category["id"], title="Keep")
        gone = await api.create_thread(alice, category["id"], title="Gone")
        await api.delete_thread(alice, gone["id"])

        data = (await client.get("/api/threads")).json()["data"]
        assert [t["id"] for t in data["threads"]] == [keep["id"]]
        assert (await client.get(f"/api/threads/{gone['id']}")).status_code == 404
