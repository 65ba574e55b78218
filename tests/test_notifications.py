"""
Notification inbox, admin messaging and realtime push
"""
import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import app
from app.models import Notification
from app.realtime.connection_manager import connection_manager
from app.services.notification_service import notification_service
from app.utils.security import create_access_token

from helpers import answers_json


@pytest.fixture
def user(make_user):
    return make_user("reader")


@pytest.fixture
def admin(make_user):
    return make_user("admin", role="admin")


@pytest.fixture
def inbox(db, user):
    return [
        notification_service.create(db, user.id, f"Title {n}", f"Content {n}")
        for n in range(3)
    ]


class TestInbox:

    def test_list(self, client, auth_headers, user, inbox):
        response = client.get("/api/notifications/", headers=auth_headers(user))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["unread"] == 3
        assert {n["title"] for n in body["items"]} == {"Title 0", "Title 1", "Title 2"}

    def test_pagination(self, client, auth_headers, user, inbox):
        response = client.get("/api/notifications/", params={"skip": 1, "limit": 1}, headers=auth_headers(user))

        body = response.json()
        assert len(body["items"]) == 1
        assert body["total"] == 3

    def test_mark_read(self, client, auth_headers, user, inbox):
        headers = auth_headers(user)

        response = client.post(f"/api/notifications/{inbox[0].id}/read", headers=headers)

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread": 2}
        unread = client.get("/api/notifications/", params={"unread_only": True}, headers=headers).json()
        assert unread["total"] == 2

    def test_mark_all_read(self, client, auth_headers, user, inbox):
        headers = auth_headers(user)
        client.post(f"/api/notifications/{inbox[0].id}/read", headers=headers)

        response = client.post("/api/notifications/read-all", headers=headers)

        assert response.json() == {"updated": 2}
        assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread": 0}

    def test_delete(self, client, db, auth_headers, user, inbox):
        response = client.delete(f"/api/notifications/{inbox[1].id}", headers=auth_headers(user))

        assert response.status_code == 204
        assert db.query(Notification).count() == 2

    def test_foreign_notification_is_hidden(self, client, auth_headers, make_user, inbox):
        stranger = make_user("stranger")
        headers = auth_headers(stranger)

        assert client.post(f"/api/notifications/{inbox[0].id}/read", headers=headers).status_code == 404
        assert client.delete(f"/api/notifications/{inbox[0].id}", headers=headers).status_code == 404
        assert client.get("/api/notifications/", headers=headers).json()["total"] == 0


class TestAdminMessaging:

    def test_send_to_user(self, client, auth_headers, admin, user):
        response = client.post("/api/admin/notifications/send", json={
            "user_id": str(user.id),
            "title": "Welcome",
            "content": "Thanks for joining",
            "data": {"link": "/quizzes"},
        }, headers=auth_headers(admin))

        assert response.status_code == 201, response.text
        assert response.json()["type"] == "system"
        assert response.json()["data"] == {"link": "/quizzes"}

        inbox = client.get("/api/notifications/", headers=auth_headers(user)).json()
        assert [n["title"] for n in inbox["items"]] == ["Welcome"]

    def test_send_to_unknown_user(self, client, auth_headers, admin):
        response = client.post("/api/admin/notifications/send", json={
            "user_id": str(uuid.uuid4()),
            "title": "Hello",
            "content": "Anyone?",
        }, headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.json()["error"] == "user_not_found"

    def test_broadcast_skips_blocked_users(self, client, db, auth_headers, admin, user, make_user):
        blocked = make_user("blocked", is_blocked=True)

        response = client.post("/api/admin/notifications/broadcast", json={
            "title": "Maintenance",
            "content": "Back in five minutes",
        }, headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {"recipients": 2}
        assert db.query(Notification).filter(Notification.user_id == blocked.id).count() == 0
        assert db.query(Notification).filter(Notification.type == "broadcast").count() == 2

    def test_non_admin_cannot_send(self, client, auth_headers, user):
        response = client.post("/api/admin/notifications/broadcast", json={
            "title": "Spam",
            "content": "Spam",
        }, headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["error"] == "admin_required"


class TestRealtime:

    def test_rejects_bad_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/notifications?token=garbage") as ws:
                ws.receive_json()

    def test_admin_message_is_pushed(self, auth_headers, admin, user):
        with TestClient(app) as client:
            token = create_access_token(str(user.id))
            with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
                client.post("/api/admin/notifications/send", json={
                    "user_id": str(user.id),
                    "title": "Ping",
                    "content": "Realtime hello",
                }, headers=auth_headers(admin))

                message = ws.receive_json()

        assert message["event"] == "notification"
        assert message["title"] == "Ping"
        assert message["is_read"] is False
        assert not connection_manager.is_connected(user.id)

    def test_submit_pushes_completion(self, auth_headers, make_user, make_quiz, user):
        quiz = make_quiz(make_user("author", premium=True))
        headers = auth_headers(user)

        with TestClient(app) as client:
            token = create_access_token(str(user.id))
            with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
                attempt_id = client.post(f"/api/attempts/start/{quiz.id}", headers=headers).json()["attempt_id"]
                client.post(
                    f"/api/attempts/{attempt_id}/submit",
                    json={"answers": answers_json(quiz, (1, "B"), (2, "D"), (3, "C"))},
                    headers=headers,
                )

                message = ws.receive_json()

        assert message["type"] == "attempt"
        assert message["data"]["attempt_id"] == attempt_id
        assert message["data"]["score"] == 100
