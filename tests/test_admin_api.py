"""
Admin back-office and user profile endpoints
"""
from datetime import timedelta

import pytest

from app.models import TestAttempt, User
from app.services.attempt_service import attempt_service
from app.utils.timeutils import utcnow

from helpers import answers


@pytest.fixture
def admin(make_user):
    return make_user("admin", role="admin")


@pytest.fixture
def author(make_user):
    return make_user("author", premium=True)


class TestAccess:

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/admin/stats"),
        ("get", "/api/admin/users"),
        ("post", "/api/admin/attempts/expire"),
    ])
    def test_regular_users_are_refused(self, client, auth_headers, make_user, method, path):
        response = getattr(client, method)(path, headers=auth_headers(make_user()))

        assert response.status_code == 403
        assert response.json()["error"] == "admin_required"

    def test_anonymous_is_refused(self, client):
        assert client.get("/api/admin/stats").status_code == 401


class TestUserManagement:

    def test_grant_premium(self, client, db, auth_headers, admin, make_user):
        user = make_user("buyer")
        until = (utcnow() + timedelta(days=30)).replace(microsecond=0)

        response = client.patch(
            f"/api/admin/users/{user.id}",
            json={"premium_until": until.isoformat() + "Z"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200, response.text
        db.expire_all()
        assert db.get(User, user.id).premium_until == until

        created = client.post(
            "/api/quizzes/", json={"title": "Now allowed", "is_premium": True}, headers=auth_headers(user)
        )
        assert created.status_code == 201

    def test_revoke_premium(self, client, db, auth_headers, admin, make_user):
        user = make_user("lapsed", premium=True)

        client.patch(f"/api/admin/users/{user.id}", json={"premium_until": None}, headers=auth_headers(admin))

        db.expire_all()
        assert db.get(User, user.id).premium_until is None

    def test_block_user(self, client, auth_headers, admin, make_user):
        user = make_user("troll")

        response = client.patch(f"/api/admin/users/{user.id}", json={"is_blocked": True}, headers=auth_headers(admin))

        assert response.json()["is_blocked"] is True
        assert client.get("/api/users/me", headers=auth_headers(user)).status_code == 403

    def test_admin_cannot_demote_self(self, client, auth_headers, admin):
        response = client.patch(f"/api/admin/users/{admin.id}", json={"role": "user"}, headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.json()["error"] == "self_update"

    def test_invalid_role(self, client, auth_headers, admin, make_user):
        user = make_user()

        response = client.patch(f"/api/admin/users/{user.id}", json={"role": "owner"}, headers=auth_headers(admin))

        assert response.status_code == 422

    def test_search_users(self, client, auth_headers, admin, make_user):
        make_user("carol")
        make_user("dave")

        response = client.get("/api/admin/users", params={"search": "CAR"}, headers=auth_headers(admin))

        assert [u["username"] for u in response.json()] == ["carol"]


class TestQuizModeration:

    def test_toggle_hidden(self, client, auth_headers, admin, author, make_user, make_quiz):
        quiz = make_quiz(author)
        player = make_user("player")

        hidden = client.post(f"/api/admin/quizzes/{quiz.id}/toggle-hidden", headers=auth_headers(admin))
        assert hidden.json()["is_hidden"] is True
        assert client.get(f"/api/quizzes/{quiz.id}", headers=auth_headers(player)).status_code == 404
        assert client.get(f"/api/quizzes/{quiz.id}", headers=auth_headers(admin)).status_code == 200

        shown = client.post(f"/api/admin/quizzes/{quiz.id}/toggle-hidden", headers=auth_headers(admin))
        assert shown.json()["is_hidden"] is False


class TestSweepAndStats:

    def test_expire_endpoint(self, client, db, auth_headers, admin, author, make_user, make_quiz):
        timed = make_quiz(author, time_limit=10)
        untimed = make_quiz(author, time_limit=None, title="Untimed")
        player = make_user("player")
        long_ago = utcnow() - timedelta(hours=2)
        overdue = attempt_service.start_attempt(db, player, timed.id, now=long_ago)
        attempt_service.start_attempt(db, player, untimed.id, now=long_ago)

        response = client.post("/api/admin/attempts/expire", headers=auth_headers(admin))

        assert response.json() == {"expired": 1}
        db.expire_all()
        assert db.get(TestAttempt, overdue["attempt_id"]).status == "abandoned"
        assert client.post("/api/admin/attempts/expire", headers=auth_headers(admin)).json() == {"expired": 0}

    def test_platform_stats(self, client, db, auth_headers, admin, author, make_user, make_quiz):
        quiz = make_quiz(author)
        make_quiz(author, is_premium=True, is_hidden=True, title="Secret")
        make_user("blocked", is_blocked=True)
        player = make_user("player")
        started = attempt_service.start_attempt(db, player, quiz.id)
        attempt_service.submit(db, player, started["attempt_id"], answers(quiz, (1, "B"), (2, "D")))
        attempt_service.start_attempt(db, author, quiz.id)

        stats = client.get("/api/admin/stats", headers=auth_headers(admin)).json()

        assert stats["total_users"] == 4
        assert stats["blocked_users"] == 1
        assert stats["premium_users"] == 1
        assert stats["total_quizzes"] == 2
        assert stats["premium_quizzes"] == 1
        assert stats["hidden_quizzes"] == 1
        assert stats["attempts_by_status"] == {"in_progress": 1, "completed": 1, "late": 0, "abandoned": 0}
        assert stats["avg_score"] == 67.0
        assert stats["leaderboard_entries"] == 1
        assert stats["unread_notifications"] == 1


class TestProfile:

    def test_update_profile(self, client, auth_headers, make_user):
        user = make_user()

        response = client.patch("/api/users/me", json={"name": "New Name"}, headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json()["name"] == "New Name"

    def test_profile_cannot_change_role(self, client, auth_headers, make_user):
        user = make_user()

        response = client.patch("/api/users/me", json={"role": "admin"}, headers=auth_headers(user))

        assert response.json()["role"] == "user"

    def test_performance(self, client, db, auth_headers, author, make_user, make_quiz):
        quiz = make_quiz(author)
        player = make_user("player")
        now = utcnow()
        for choices in (((1, "B"),), ((1, "B"), (2, "D"), (3, "C"))):
            started = attempt_service.start_attempt(db, player, quiz.id, now=now)
            attempt_service.submit(db, player, started["attempt_id"], answers(quiz, *choices), now=now + timedelta(seconds=60))
        started = attempt_service.start_attempt(db, player, quiz.id, now=now)
        attempt_service.abandon(db, player, started["attempt_id"], now=now)

        body = client.get("/api/users/me/performance", headers=auth_headers(player)).json()

        assert body["total_attempts"] == 3
        assert body["finished_attempts"] == 2
        assert body["abandoned_attempts"] == 1
        assert body["overall_avg_score"] == pytest.approx(66.5)
        assert body["total_time_spent"] == 120
        assert body["weak_quizzes"] == []
        [breakdown] = body["quizzes"]
        assert breakdown["best_score"] == 100
        assert breakdown["attempts"] == 2
        assert breakdown["rank"] == 1
