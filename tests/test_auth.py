"""Tests for authentication endpoints and flows."""

import re
from datetime import datetime, timedelta
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.user import User
from app.services.auth import AuthService, hash_reset_token
from app.services.jwt import get_jwt_service

RESET_LINK = re.compile(r"/api/v1/users/reset-password/([0-9a-f]{64})")


def request_reset(client: TestClient, outbox, email: str = "test@example.com") -> str:
    response = client.post("/api/v1/users/forgot-password", json={"email": email})
    assert response.status_code == 200
    return RESET_LINK.search(outbox.messages[-1]["body"]).group(1)


class TestPasswordHashing:
    """Tests for password hashing."""

    def test_verify_same_password(self, auth_service: AuthService):
        digest = auth_service.hash_password("correct horse")
        assert digest != "correct horse"
        assert auth_service.verify_password("correct horse", digest)

    def test_verify_different_password(self, auth_service: AuthService):
        digest = auth_service.hash_password("correct horse")
        assert not auth_service.verify_password("correct horse ", digest)
        assert not auth_service.verify_password("battery staple", digest)


class TestSignup:
    """Tests for user registration."""

    def test_signup_success(self, client: TestClient):
        """Sign up returns a token, sets the cookie and the default role."""
        response = client.post(
            "/api/v1/users/signup",
            json={
                "name": "New User",
                "email": "New@Example.com",
                "password": "password123",
                "passwordConfirm": "password123",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "success"
        assert data["token"]
        assert data["data"]["user"]["email"] == "new@example.com"
        assert data["data"]["user"]["role"] == "user"
        assert "passwordHash" not in data["data"]["user"]
        assert "version" not in data["data"]["user"]
        assert response.cookies.get("jwt") == data["token"]

    def test_signup_ignores_role(self, client: TestClient, db_session: Session):
        """Self-registration can never pick a role."""
        response = client.post(
            "/api/v1/users/signup",
            json={
                "name": "Sneaky User",
                "email": "sneaky@example.com",
                "password": "password123",
                "passwordConfirm": "password123",
                "role": "admin",
            },
        )
        assert response.status_code == 201
        assert db_session.query(User).filter(User.email == "sneaky@example.com").one().role == "user"

    def test_signup_password_mismatch_writes_nothing(self, client: TestClient, db_session: Session):
        response = client.post(
            "/api/v1/users/signup",
            json={"name": "Mismatch", "email": "mm@example.com", "password": "abc", "passwordConfirm": "xyz"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "fail"
        assert "Passwords are not the same" in body["message"]
        assert {"field": "password", "message": "A password must have at least 8 characters"} in body["errors"]
        assert db_session.query(User).count() == 0

    def test_signup_duplicate_email(self, client: TestClient, test_user: dict):
        response = client.post(
            "/api/v1/users/signup",
            json={
                "name": "Another User",
                "email": "test@example.com",
                "password": "password123",
                "passwordConfirm": "password123",
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Email already registered"


class TestLogin:
    """Tests for user login."""

    def test_login_success(self, client: TestClient, test_user: dict):
        response = client.post("/api/v1/users/login", json={"email": "test@example.com", "password": "password123"})
        assert response.status_code == 200
        data = response.json()
        assert data["data"]["user"]["id"] == test_user["user_id"]
        assert data["token"]

    def test_login_missing_fields(self, client: TestClient):
        response = client.post("/api/v1/users/login", json={"email": "test@example.com"})
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide email and password!"

    def test_wrong_password_and_unknown_email_identical(self, client: TestClient, test_user: dict):
        """Both failures must be indistinguishable to the caller."""
        with patch.object(get_settings(), "APP_ENV", "production"):
            wrong_password = client.post(
                "/api/v1/users/login", json={"email": "test@example.com", "password": "wrongpassword"}
            )
            unknown_email = client.post(
                "/api/v1/users/login", json={"email": "nobody@example.com", "password": "password123"}
            )
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.content == unknown_email.content
        assert wrong_password.json() == {"status": "fail", "message": "Incorrect email or password"}

    def test_logout_clears_cookie(self, client: TestClient, test_user: dict):
        client.post("/api/v1/users/login", json={"email": "test@example.com", "password": "password123"})
        assert client.cookies.get("jwt")
        response = client.get("/api/v1/users/logout")
        assert response.status_code == 200
        assert not client.cookies.get("jwt")


class TestProtect:
    """Tests for the authentication dependency."""

    def test_no_token(self, client: TestClient):
        response = client.get("/api/v1/users/me")
        assert response.status_code == 401
        assert response.json()["message"] == "You are not logged in! Please log in to get access."

    def test_bearer_token(self, client: TestClient, test_user: dict):
        response = client.get("/api/v1/users/me", headers=test_user["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "test@example.com"

    def test_cookie_token(self, client: TestClient, test_user: dict):
        response = client.get("/api/v1/users/me", headers={"Cookie": f"jwt={test_user['token']}"})
        assert response.status_code == 200

    def test_tampered_token(self, client: TestClient, test_user: dict):
        response = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {test_user['token']}x"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token. Please log in again!"

    def test_expired_token(self, client: TestClient, test_user: dict):
        jwt_service = get_jwt_service()
        issued_at = datetime.utcnow() - timedelta(minutes=jwt_service.expire_minutes + 1)
        token = jwt_service.create_token(test_user["user_id"], issued_at=issued_at)
        response = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Your token has expired! Please log in again."

    def test_deleted_user(self, client: TestClient, db_session: Session, test_user: dict):
        db_session.query(User).filter(User.id == test_user["user_id"]).delete()
        db_session.commit()
        response = client.get("/api/v1/users/me", headers=test_user["headers"])
        assert response.status_code == 401
        assert response.json()["message"] == "The user belonging to this token no longer exists."

    def test_token_rejected_after_password_change(self, client: TestClient, test_user: dict):
        """A validly signed token stops working once the password changes."""
        response = client.patch(
            "/api/v1/users/update-my-password",
            json={"passwordCurrent": "password123", "password": "newpassword1", "passwordConfirm": "newpassword1"},
            headers=test_user["headers"],
        )
        assert response.status_code == 200
        new_token = response.json()["token"]

        stale = client.get("/api/v1/users/me", headers=test_user["headers"])
        assert stale.status_code == 401
        assert stale.json()["message"] == "User recently changed password! Please log in again."

        fresh = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {new_token}"})
        assert fresh.status_code == 200


class TestRestrictTo:
    """Tests for role restriction."""

    def test_wrong_role(self, client: TestClient, test_user: dict):
        response = client.get("/api/v1/users/", headers=test_user["headers"])
        assert response.status_code == 403
        assert response.json()["message"] == "You do not have permission to perform this action"

    def test_allowed_role(self, client: TestClient, admin_user: dict, test_user: dict):
        response = client.get("/api/v1/users/", headers=admin_user["headers"])
        assert response.status_code == 200
        assert response.json()["results"] == 2


class TestForgotPassword:
    """Tests for issuing reset tokens."""

    def test_unknown_email(self, client: TestClient, db_session: Session, test_user: dict, outbox):
        response = client.post("/api/v1/users/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 404
        assert response.json()["message"] == "There is no user with that email address."
        assert outbox.messages == []
        user = db_session.get(User, test_user["user_id"])
        assert user.password_reset_token_hash is None
        assert user.password_reset_expires_at is None

    def test_stores_hash_not_plaintext(self, client: TestClient, get_user, test_user: dict, outbox):
        token = request_reset(client, outbox)
        assert outbox.messages[0]["to"] == "test@example.com"
        user = get_user(test_user["user_id"])
        assert user.password_reset_token_hash != token
        assert user.password_reset_token_hash == hash_reset_token(token)
        assert user.password_reset_expires_at > datetime.utcnow() + timedelta(minutes=9)

    def test_dispatch_failure_clears_token(self, client: TestClient, get_user, test_user: dict, outbox):
        outbox.fail = True
        response = client.post("/api/v1/users/forgot-password", json={"email": "test@example.com"})
        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert body["message"] == "There was an error sending the email. Try again later!"
        user = get_user(test_user["user_id"])
        assert user.password_reset_token_hash is None
        assert user.password_reset_expires_at is None


class TestResetPassword:
    """Tests for consuming reset tokens."""

    def test_reset_once(self, client: TestClient, get_user, test_user: dict, outbox):
        token = request_reset(client, outbox)
        payload = {"password": "brandnew123", "passwordConfirm": "brandnew123"}

        response = client.patch(f"/api/v1/users/reset-password/{token}", json=payload)
        assert response.status_code == 200
        assert response.json()["token"]
        user = get_user(test_user["user_id"])
        assert user.password_reset_token_hash is None
        assert user.password_changed_at is not None

        again = client.patch(f"/api/v1/users/reset-password/{token}", json=payload)
        assert again.status_code == 400
        assert again.json()["message"] == "Token is invalid or has expired"

        login = client.post("/api/v1/users/login", json={"email": "test@example.com", "password": "brandnew123"})
        assert login.status_code == 200

    def test_expired_token(self, client: TestClient, db_session: Session, get_user, test_user: dict, outbox):
        token = request_reset(client, outbox)
        user = get_user(test_user["user_id"])
        user.password_reset_expires_at = datetime.utcnow() - timedelta(seconds=1)
        db_session.commit()

        response = client.patch(
            f"/api/v1/users/reset-password/{token}",
            json={"password": "brandnew123", "passwordConfirm": "brandnew123"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Token is invalid or has expired"

    def test_mismatched_confirmation_keeps_token(self, client: TestClient, get_user, test_user: dict, outbox):
        token = request_reset(client, outbox)
        response = client.patch(
            f"/api/v1/users/reset-password/{token}",
            json={"password": "brandnew123", "passwordConfirm": "different123"},
        )
        assert response.status_code == 400
        assert get_user(test_user["user_id"]).password_reset_token_hash == hash_reset_token(token)


class TestUpdatePassword:
    """Tests for changing the password while logged in."""

    def test_wrong_current_password(self, client: TestClient, test_user: dict):
        response = client.patch(
            "/api/v1/users/update-my-password",
            json={"passwordCurrent": "wrongpassword", "password": "newpassword1", "passwordConfirm": "newpassword1"},
            headers=test_user["headers"],
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Your current password is wrong."

    def test_new_password_works_for_login(self, client: TestClient, test_user: dict):
        client.patch(
            "/api/v1/users/update-my-password",
            json={"passwordCurrent": "password123", "password": "newpassword1", "passwordConfirm": "newpassword1"},
            headers=test_user["headers"],
        )
        old = client.post("/api/v1/users/login", json={"email": "test@example.com", "password": "password123"})
        new = client.post("/api/v1/users/login", json={"email": "test@example.com", "password": "newpassword1"})
        assert old.status_code == 401
        assert new.status_code == 200
