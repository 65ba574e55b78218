"""
HTTP tests for registration, login, token refresh and Google sign-in
"""
import pytest

from app.models import User
from app.services import google_oauth
from app.utils.security import create_refresh_token


def register(client, username="alice", email="alice@quizhub.io", password="secret123"):
    return client.post("/api/auth/register", json={
        "username": username,
        "email": email,
        "password": password,
    })


class TestRegisterAndLogin:

    def test_register_returns_tokens(self, client):
        response = register(client)

        assert response.status_code == 201, response.text
        tokens = response.json()
        assert tokens["token_type"] == "bearer"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "alice"
        assert me.json()["role"] == "user"
        assert me.json()["name"] == "alice"

    def test_duplicate_username(self, client):
        register(client)

        response = register(client, email="other@quizhub.io")

        assert response.status_code == 409
        assert response.json()["error"] == "username_taken"

    def test_duplicate_email(self, client):
        register(client)

        response = register(client, username="alice2")

        assert response.status_code == 409
        assert response.json()["error"] == "email_taken"

    def test_register_validates_payload(self, client):
        response = register(client, email="not-an-email", password="123")

        assert response.status_code == 422

    @pytest.mark.parametrize("login", ["alice", "alice@quizhub.io"])
    def test_login_by_username_or_email(self, client, login):
        register(client)

        response = client.post("/api/auth/login", json={"login": login, "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_wrong_password(self, client):
        register(client)

        response = client.post("/api/auth/login", json={"login": "alice", "password": "wrong"})

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_credentials"

    def test_google_account_has_no_password(self, client, make_user):
        make_user("gina")

        response = client.post("/api/auth/login", json={"login": "gina", "password": "anything"})

        assert response.status_code == 401

    def test_blocked_user_cannot_login(self, client, make_user):
        make_user("mallory", password="secret123", is_blocked=True)

        response = client.post("/api/auth/login", json={"login": "mallory", "password": "secret123"})

        assert response.status_code == 403
        assert response.json()["error"] == "user_blocked"


class TestTokens:

    def test_refresh_issues_new_pair(self, client):
        tokens = register(client).json()

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_access_token_is_not_a_refresh_token(self, client):
        tokens = register(client).json()

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_token"

    def test_refresh_token_is_not_an_access_token(self, client, make_user):
        user = make_user()

        response = client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {create_refresh_token(str(user.id))}"},
        )

        assert response.status_code == 401

    def test_token_for_deleted_user(self, client, db, make_user, auth_headers):
        user = make_user()
        headers = auth_headers(user)
        db.delete(user)
        db.commit()

        response = client.get("/api/auth/me", headers=headers)

        assert response.status_code == 401


class TestGoogleSignIn:

    def test_login_url_requires_configuration(self, client):
        response = client.get("/api/auth/google/login")

        assert response.status_code == 400
        assert response.json()["error"] == "google_not_configured"

    @pytest.fixture
    def google_profile(self, monkeypatch):
        profile = {
            "sub": "google-123",
            "email": "gwen@gmail.com",
            "name": "Gwen",
            "picture": "https://example.com/gwen.png",
        }

        async def fake_exchange(code):
            assert code == "auth-code"
            return {"access_token": "google-access-token"}

        async def fake_user_info(access_token):
            assert access_token == "google-access-token"
            return profile

        monkeypatch.setattr(google_oauth, "exchange_code_for_token", fake_exchange)
        monkeypatch.setattr(google_oauth, "get_google_user_info", fake_user_info)
        return profile

    def test_callback_creates_user(self, client, db, google_profile):
        response = client.get("/api/auth/google/callback", params={"code": "auth-code"})

        assert response.status_code == 200, response.text
        user = db.query(User).filter(User.email == "gwen@gmail.com").one()
        assert user.google_id == "google-123"
        assert user.username == "gwen"
        assert user.password_hash is None
        assert user.avatar_url == "https://example.com/gwen.png"

    def test_callback_links_existing_email(self, client, db, make_user, google_profile):
        existing = make_user("gwen")
        google_profile["email"] = existing.email

        client.get("/api/auth/google/callback", params={"code": "auth-code"})

        db.expire_all()
        assert db.query(User).count() == 1
        assert db.get(User, existing.id).google_id == "google-123"

    def test_callback_picks_free_username(self, client, db, make_user, google_profile):
        make_user("gwen")

        client.get("/api/auth/google/callback", params={"code": "auth-code"})

        user = db.query(User).filter(User.email == "gwen@gmail.com").one()
        assert user.username == "gwen2"
