"""
tests/test_auth_routes.py -- Integration tests for /api/auth/*.

These tests exercise the full stack: routing -> dependency chain ->
UserStore -> response model serialization.

Coverage:
  - register -> login -> me scenario; password material never in a response
  - duplicate email, weak password, bad login
  - cookie authentication and logout
  - role gate on admin routes, self-delete refusal
  - a token outliving its user is rejected
"""

from __future__ import annotations

from auth.tokens import create_access_token
from conftest import ADMIN_PASSWORD, ApiContext, bearer

NEW_PASSWORD = "Fresh@pass9"


def _assert_no_password(body) -> None:
    text = str(body).lower()
    assert "password" not in text, f"Password material leaked: {body}"


class TestRegisterLoginMe:
    def test_register_login_me(self, api_client: ApiContext) -> None:
        client = api_client.client
        resp = client.post(
            "/api/auth/register",
            json={"name": "Ann", "email": "Ann@Example.com", "password": NEW_PASSWORD},
        )
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        body = resp.json()
        assert body["success"] is True
        assert body["user"]["email"] == "ann@example.com"
        assert body["user"]["role"] == "user"
        _assert_no_password(body)

        client.cookies.clear()
        resp = client.post("/api/auth/login", json={"email": "ann@example.com", "password": NEW_PASSWORD})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        token = resp.json()["token"]
        assert resp.headers["cache-control"] == "no-store"
        _assert_no_password(resp.json())

        client.cookies.clear()
        resp = client.get("/api/auth/me", headers=bearer(token))
        assert resp.status_code == 200
        me = resp.json()["user"]
        assert me["email"] == "ann@example.com"
        assert me["lastLogin"] is not None
        _assert_no_password(resp.json())

    def test_duplicate_email(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/auth/register",
            json={"name": "Dup", "email": "user@example.com", "password": NEW_PASSWORD},
        )
        assert resp.status_code == 400, f"Expected 400, got {resp.status_code}: {resp.text}"
        assert resp.json()["code"] == "conflict"

    def test_weak_password(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/auth/register",
            json={"name": "Weak", "email": "weak@example.com", "password": "alllowercase"},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert any(e["field"] == "password" for e in body["errors"])

    def test_password_special_character_outside_allowed_set(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/auth/register",
            json={"name": "Hash", "email": "hash@example.com", "password": "Weak#pass1"},
        )
        assert resp.status_code == 400, f"'#' is not an accepted special character: {resp.text}"
        assert any(e["field"] == "password" for e in resp.json()["errors"])

    def test_self_registration_cannot_claim_admin(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/auth/register",
            json={"name": "Eve", "email": "eve@example.com", "password": NEW_PASSWORD, "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "user"

    def test_admin_can_register_admin(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/auth/register",
            json={"name": "Ops", "email": "ops@example.com", "password": NEW_PASSWORD, "role": "admin"},
            headers=bearer(api_client.admin_token),
        )
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        assert resp.json()["user"]["role"] == "admin"

    def test_bad_login(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"

        resp = api_client.client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"


class TestHumanAuthFailures:
    def test_me_without_credentials(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Not authorized to access this route"

    def test_me_with_garbage_token(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/me", headers=bearer("garbage"))
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_token_for_deleted_user(self, api_client: ApiContext) -> None:
        token = create_access_token(987654, expire_seconds=3600)
        resp = api_client.client.get("/api/auth/me", headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["message"] == "User no longer exists"


class TestCookieSession:
    def test_login_cookie_authenticates_and_logout_clears_it(self, api_client: ApiContext) -> None:
        client = api_client.client
        resp = client.post("/api/auth/login", json={"email": "admin@example.com", "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        assert "token" in resp.cookies

        resp = client.get("/api/auth/me")
        assert resp.status_code == 200, f"Cookie session should authenticate: {resp.text}"
        assert resp.json()["user"]["email"] == "admin@example.com"

        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out successfully"
        assert client.get("/api/auth/me").status_code == 401

    def test_login_and_logout_are_logged(self, api_client: ApiContext) -> None:
        entries = api_client.stores.activity.list_by_user(str(api_client.admin.id))
        actions = {e.action for e in entries}
        assert {"LOGIN", "LOGOUT"} <= actions


class TestProfileUpdates:
    def test_update_details(self, api_client: ApiContext) -> None:
        resp = api_client.client.put(
            "/api/auth/update-details",
            json={"name": "Renamed User"},
            headers=bearer(api_client.user_token),
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["name"] == "Renamed User"

    def test_update_password_requires_current(self, api_client: ApiContext) -> None:
        resp = api_client.client.put(
            "/api/auth/update-password",
            json={"currentPassword": "wrong", "newPassword": NEW_PASSWORD},
            headers=bearer(api_client.user_token),
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Current password is incorrect"


class TestUserAdministration:
    def test_user_cannot_list_users(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/users", headers=bearer(api_client.user_token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "User role user is not authorized to access this route"

    def test_admin_lists_users_without_passwords(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/users", headers=bearer(api_client.admin_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == len(body["users"]) >= 2
        _assert_no_password(body)

    def test_admin_cannot_delete_self(self, api_client: ApiContext) -> None:
        resp = api_client.client.delete(
            f"/api/auth/users/{api_client.admin.id}", headers=bearer(api_client.admin_token)
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "You cannot delete your own account"

    def test_user_cannot_delete_self(self, api_client: ApiContext) -> None:
        resp = api_client.client.delete(
            f"/api/auth/users/{api_client.user.id}", headers=bearer(api_client.user_token)
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "You cannot delete your own account"

    def test_user_cannot_delete_others(self, api_client: ApiContext) -> None:
        resp = api_client.client.delete(
            f"/api/auth/users/{api_client.admin.id}", headers=bearer(api_client.user_token)
        )
        assert resp.status_code == 403

    def test_delete_missing_user(self, api_client: ApiContext) -> None:
        resp = api_client.client.delete("/api/auth/users/999999", headers=bearer(api_client.admin_token))
        assert resp.status_code == 404

    def test_deleted_user_token_stops_working(self, api_client: ApiContext) -> None:
        client = api_client.client
        resp = client.post(
            "/api/auth/register",
            json={"name": "Temp", "email": "temp@example.com", "password": NEW_PASSWORD},
        )
        assert resp.status_code == 201
        token = resp.json()["token"]
        temp_id = resp.json()["user"]["id"]
        client.cookies.clear()

        resp = client.delete(f"/api/auth/users/{temp_id}", headers=bearer(api_client.admin_token))
        assert resp.status_code == 200

        resp = client.get("/api/auth/me", headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["message"] == "User no longer exists"
