"""Integration tests for realtime event delivery over /ws."""

from __future__ import annotations

import pytest
from starlette.websockets import WebSocketDisconnect

pytestmark = pytest.mark.integration


def as_user(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


class TestWebSocketConnection:
    """Test connection identity and keepalive."""

    def test_rejects_connection_without_identity(self, client) -> None:
        """Connections without a user id are closed with a policy violation."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws") as websocket:
                websocket.receive_text()

        assert exc_info.value.code == 1008

    def test_ping_pong(self, client) -> None:
        """The server answers ping with pong."""
        with client.websocket_connect("/ws?user_id=u1") as websocket:
            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

    def test_connection_is_registered(self, app, client) -> None:
        """An open connection is registered under its user."""
        with client.websocket_connect("/ws", headers={"x-user-id": "u1"}) as websocket:
            websocket.send_text("ping")
            websocket.receive_text()
            assert app.state.registry.is_online("u1")
            assert client.get("/health").json()["components"]["realtime"]["connections"] == 1


class TestMutationEvents:
    """Test events emitted by mutation handlers."""

    def test_like_broadcasts_and_notifies_creator(self, client, make_user, make_post) -> None:
        """The creator sees the post update, the notification and the new count."""
        alice, bob = make_user("alice"), make_user("bob")
        post = make_post(alice["id"])

        with client.websocket_connect(f"/ws?user_id={alice['id']}") as websocket:
            client.put(
                f"/api/posts/{post['id']}/like", json={"liked": True}, headers=as_user(bob["id"])
            )

            updated = websocket.receive_json()
            assert updated["event"] == "post-updated"
            assert updated["data"] == {"postId": post["id"], "action": "like", "likeCount": 1}

            notification = websocket.receive_json()
            assert notification["event"] == "new-notification"
            assert notification["data"]["type"] == "like"
            assert notification["data"]["actorId"] == bob["id"]

            count = websocket.receive_json()
            assert count == {"event": "notification-count-updated", "data": {"count": 1}}

    def test_follow_notifies_followed_user(self, client, make_user) -> None:
        """The followed user receives the notification then follow-updated."""
        alice, bob = make_user("alice"), make_user("bob")

        with client.websocket_connect(f"/ws?user_id={bob['id']}") as websocket:
            client.post(
                "/api/follows", json={"followingId": bob["id"]}, headers=as_user(alice["id"])
            )

            assert websocket.receive_json()["event"] == "new-notification"
            assert websocket.receive_json()["event"] == "notification-count-updated"
            follow = websocket.receive_json()
            assert follow == {
                "event": "follow-updated",
                "data": {"userId": bob["id"], "followerId": alice["id"], "action": "follow"},
            }

    def test_message_reaches_every_tab(self, client, make_user) -> None:
        """Each open connection of the receiver gets the message once."""
        alice, bob = make_user("alice"), make_user("bob")

        with client.websocket_connect(f"/ws?user_id={bob['id']}") as tab_a:
            with client.websocket_connect(f"/ws?user_id={bob['id']}") as tab_b:
                response = client.post(
                    "/api/conversations/send",
                    json={"receiverId": bob["id"], "content": " hello "},
                    headers=as_user(alice["id"]),
                )
                assert response.status_code == 200

                for tab in (tab_a, tab_b):
                    message = tab.receive_json()
                    assert message["event"] == "new-message"
                    assert message["data"]["content"] == "hello"
                    assert tab.receive_json()["event"] == "conversation-updated"

    def test_offline_recipient_does_not_fail_mutation(self, client, make_user) -> None:
        """Emitting to a user with no connection is a silent no-op."""
        alice, bob = make_user("alice"), make_user("bob")

        response = client.post(
            "/api/follows", json={"followingId": bob["id"]}, headers=as_user(alice["id"])
        )

        assert response.status_code == 200
