"""Integration tests for cache invalidation after mutations.

Each test runs the full application against a temporary SQLite file and
records every invalidation call the mutation handlers make.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI

from momento.cache import InvalidationBus, KeyedCache

pytestmark = pytest.mark.integration


class RecordingBus(InvalidationBus):
    """Invalidation bus remembering every (namespace, id) call."""

    def __init__(self, cache: KeyedCache):
        super().__init__(cache)
        self.calls: list[tuple[str, str | None]] = []

    def invalidate(self, namespace, id=None) -> int:
        name = getattr(namespace, "value", namespace)
        self.calls.append((name, id))
        return super().invalidate(namespace, id)


@pytest.fixture
def bus(app: FastAPI, client) -> RecordingBus:
    recording = RecordingBus(app.state.cache)
    app.state.invalidator = recording
    return recording


def as_user(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


class TestReadAfterMutation:
    """Reads after a committed mutation never return the pre-mutation payload."""

    def test_like_invalidates_cached_post(self, client, bus, make_user, make_post) -> None:
        """GET, like, GET again shows the like."""
        alice, bob = make_user("alice"), make_user("bob")
        post = make_post(alice["id"])

        first = client.get(f"/api/posts/{post['id']}")
        cached = client.get(f"/api/posts/{post['id']}")
        assert first.headers["X-Cache"] == "MISS"
        assert cached.headers["X-Cache"] == "HIT"
        assert cached.json()["likeCount"] == 0

        liked = client.put(
            f"/api/posts/{post['id']}/like", json={"liked": True}, headers=as_user(bob["id"])
        )
        assert liked.status_code == 200
        assert ("post", post["id"]) in bus.calls
        assert ("posts", None) in bus.calls

        fresh = client.get(f"/api/posts/{post['id']}")
        assert fresh.headers["X-Cache"] == "MISS"
        assert fresh.json()["likeCount"] == 1
        assert fresh.json()["likes"] == [bob["id"]]

    def test_unlike(self, client, bus, make_user, make_post) -> None:
        """Unliking removes only the acting user's like."""
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        post = make_post(alice["id"])
        url = f"/api/posts/{post['id']}/like"
        client.put(url, json={"liked": True}, headers=as_user(bob["id"]))
        client.put(url, json={"liked": True}, headers=as_user(carol["id"]))

        response = client.put(url, json={"liked": False}, headers=as_user(bob["id"]))

        assert response.json()["likes"] == [carol["id"]]
        assert client.get(f"/api/posts/{post['id']}").json()["likeCount"] == 1

    def test_create_post_invalidates_lists(self, client, bus, make_user, make_post) -> None:
        """A new post appears in the cached list."""
        alice = make_user("alice")
        make_post(alice["id"], caption="first")
        assert len(client.get("/api/posts").json()["documents"]) == 1
        assert client.get("/api/posts").headers["X-Cache"] == "HIT"

        make_post(alice["id"], caption="second")

        assert ("posts", None) in bus.calls
        response = client.get("/api/posts")
        assert response.headers["X-Cache"] == "MISS"
        assert [p["caption"] for p in response.json()["documents"]] == ["second", "first"]

    def test_update_post(self, client, bus, make_user, make_post) -> None:
        """Updating a post drops the post and every list."""
        alice = make_user("alice")
        post = make_post(alice["id"])
        client.get(f"/api/posts/{post['id']}")

        response = client.put(
            f"/api/posts/{post['id']}", json={"caption": "edited"}, headers=as_user(alice["id"])
        )

        assert response.status_code == 200
        assert bus.calls == [("post", post["id"]), ("posts", None)]
        assert client.get(f"/api/posts/{post['id']}").json()["caption"] == "edited"

    def test_only_creator_may_update(self, client, bus, make_user, make_post) -> None:
        """Rejected mutations invalidate nothing."""
        alice, bob = make_user("alice"), make_user("bob")
        post = make_post(alice["id"])

        response = client.put(
            f"/api/posts/{post['id']}", json={"caption": "mine"}, headers=as_user(bob["id"])
        )

        assert response.status_code == 403
        assert response.json()["code"] == "Forbidden"
        assert bus.calls == []

    def test_delete_post(self, client, bus, make_user, make_post) -> None:
        """Deleting a post drops post, lists and reviews."""
        alice = make_user("alice")
        post = make_post(alice["id"])
        client.get(f"/api/posts/{post['id']}")

        response = client.delete(f"/api/posts/{post['id']}", headers=as_user(alice["id"]))

        assert response.status_code == 200
        assert bus.calls == [("post", post["id"]), ("posts", None), ("reviews", None)]
        assert client.get(f"/api/posts/{post['id']}").status_code == 404

    def test_update_user(self, client, bus, make_user) -> None:
        """Profile updates drop that profile and the follow lists."""
        alice = make_user("alice")
        client.get(f"/api/users/{alice['id']}")

        response = client.put(
            f"/api/users/{alice['id']}", json={"bio": "hi"}, headers=as_user(alice["id"])
        )

        assert response.status_code == 200
        assert bus.calls == [("user", alice["id"]), ("follows", None)]
        assert client.get(f"/api/users/{alice['id']}").json()["bio"] == "hi"

    def test_profile_update_refreshes_follow_lists(self, client, bus, make_user) -> None:
        """A cached followers list shows the follower's new name."""
        alice, bob = make_user("alice"), make_user("bob")
        client.post("/api/follows", json={"followingId": bob["id"]}, headers=as_user(alice["id"]))

        client.get(f"/api/follows/followers/{bob['id']}")
        cached = client.get(f"/api/follows/followers/{bob['id']}")
        assert cached.headers["X-Cache"] == "HIT"
        assert cached.json()[0]["fullName"] == "Alice"

        response = client.put(
            f"/api/users/{alice['id']}",
            json={"fullName": "Alice Renamed"},
            headers=as_user(alice["id"]),
        )
        assert response.status_code == 200

        fresh = client.get(f"/api/follows/followers/{bob['id']}")
        assert fresh.headers["X-Cache"] == "MISS"
        assert fresh.json()[0]["fullName"] == "Alice Renamed"

    def test_follow_and_unfollow(self, client, bus, make_user) -> None:
        """Follow changes drop both profiles, follow lists and feeds."""
        alice, bob = make_user("alice"), make_user("bob")
        client.get(f"/api/users/{bob['id']}")
        client.get(f"/api/follows/followers/{bob['id']}")

        response = client.post(
            "/api/follows", json={"followingId": bob["id"]}, headers=as_user(alice["id"])
        )
        assert response.status_code == 200
        expected = [("user", alice["id"]), ("user", bob["id"]), ("follows", None), ("posts", None)]
        assert bus.calls == expected

        assert client.get(f"/api/users/{bob['id']}").json()["followersCount"] == 1
        followers = client.get(f"/api/follows/followers/{bob['id']}").json()
        assert [u["id"] for u in followers] == [alice["id"]]

        bus.calls.clear()
        client.delete(f"/api/follows/{bob['id']}", headers=as_user(alice["id"]))
        assert bus.calls == expected
        assert client.get(f"/api/follows/followers/{bob['id']}").json() == []

    def test_repeated_follow_has_no_side_effects(self, client, bus, make_user) -> None:
        """Following twice returns the existing follow without invalidating."""
        alice, bob = make_user("alice"), make_user("bob")
        headers = as_user(alice["id"])
        client.post("/api/follows", json={"followingId": bob["id"]}, headers=headers)
        bus.calls.clear()

        response = client.post("/api/follows", json={"followingId": bob["id"]}, headers=headers)

        assert response.status_code == 200
        assert bus.calls == []

    def test_follow_refreshes_feed(self, client, bus, make_user, make_post) -> None:
        """A cached feed picks up the followed user's posts."""
        alice, bob = make_user("alice"), make_user("bob")
        make_post(bob["id"], caption="from bob")
        headers = as_user(alice["id"])
        assert client.get("/api/posts/feed", headers=headers).json()["documents"] == []

        client.post("/api/follows", json={"followingId": bob["id"]}, headers=headers)

        feed = client.get("/api/posts/feed", headers=headers).json()["documents"]
        assert [p["caption"] for p in feed] == ["from bob"]

    def test_review_mutations(self, client, bus, make_user, make_post) -> None:
        """Review create, update and delete drop the reviews namespace."""
        alice, bob = make_user("alice"), make_user("bob")
        post = make_post(alice["id"])
        assert client.get(f"/api/reviews/post/{post['id']}").json()["documents"] == []

        created = client.post(
            "/api/reviews",
            json={"postId": post["id"], "review": " great ", "rating": 5},
            headers=as_user(bob["id"]),
        )
        assert created.status_code == 201
        assert created.json()["review"] == "great"
        review_id = created.json()["id"]

        reviews = client.get(f"/api/reviews/post/{post['id']}").json()["documents"]
        assert [r["id"] for r in reviews] == [review_id]

        client.put(f"/api/reviews/{review_id}", json={"review": "ok"}, headers=as_user(bob["id"]))
        client.delete(f"/api/reviews/{review_id}", headers=as_user(bob["id"]))

        assert bus.calls == [("reviews", None)] * 3
        assert client.get(f"/api/reviews/post/{post['id']}").json()["documents"] == []

    def test_uncached_mutations_do_not_invalidate(
        self, client, bus, make_user, make_post
    ) -> None:
        """Saves and messages touch no cached namespace."""
        alice, bob = make_user("alice"), make_user("bob")
        post = make_post(alice["id"])

        client.post("/api/saves", json={"postId": post["id"]}, headers=as_user(bob["id"]))
        client.post(
            "/api/conversations/send",
            json={"receiverId": alice["id"], "content": "hi"},
            headers=as_user(bob["id"]),
        )

        assert bus.calls == []


class TestInvalidationFailure:
    """Invalidation failures never fail the mutation."""

    def test_like_succeeds_when_cache_fails(
        self, app, client, make_user, make_post, monkeypatch
    ) -> None:
        """A broken cache delete is swallowed and the like is stored."""
        alice, bob = make_user("alice"), make_user("bob")
        post = make_post(alice["id"])

        def broken(*args, **kwargs):
            raise RuntimeError("cache unavailable")

        monkeypatch.setattr(app.state.cache, "delete", broken)
        monkeypatch.setattr(app.state.cache, "delete_namespace", broken)

        response = client.put(
            f"/api/posts/{post['id']}/like", json={"liked": True}, headers=as_user(bob["id"])
        )

        assert response.status_code == 200
        assert response.json()["likeCount"] == 1


class TestCacheAdministration:
    """Test cache stats and clearing over HTTP."""

    def test_stats_and_clear(self, client, make_user) -> None:
        """Cached reads show up in stats and clear removes them."""
        alice = make_user("alice")
        client.get(f"/api/users/{alice['id']}")

        stats = client.get("/api/cache/stats").json()
        assert stats["total"] == 1
        assert stats["maxSize"] == 1000

        cleared = client.delete("/api/cache").json()
        assert cleared == {"message": "Cache cleared", "removed": 1}
        assert client.get(f"/api/users/{alice['id']}").headers["X-Cache"] == "MISS"
