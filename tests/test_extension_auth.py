"""
tests/test_extension_auth.py -- Guardian extension credential checks.

Covers:
  - verify_extension_key() prefix rule
  - extension-only routes reject missing or mismatched headers with 401
  - the extension chain never authenticates a human route
"""

from __future__ import annotations

from auth.extension_keys import verify_extension_key
from conftest import ApiContext, extension_headers

EXT_A = "a" * 32
EXT_B = "b" * 32


class TestVerifyExtensionKey:
    def test_key_with_id_prefix_is_accepted(self) -> None:
        assert verify_extension_key(EXT_A, f"{EXT_A}-anything")

    def test_key_for_another_id_is_rejected(self) -> None:
        assert not verify_extension_key(EXT_A, f"{EXT_B}-anything")

    def test_id_without_separator_is_rejected(self) -> None:
        assert not verify_extension_key(EXT_A, EXT_A)

    def test_wrong_key_is_rejected(self) -> None:
        assert not verify_extension_key(EXT_A, "wrong")


class TestExtensionRoutes:
    def test_missing_headers(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/config")
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}: {resp.text}"
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Extension authentication required"

    def test_only_id_header(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/whitelist/extension", headers={"X-Extension-ID": EXT_A})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Extension authentication required"

    def test_mismatched_key(self, api_client: ApiContext) -> None:
        headers = {"X-Extension-ID": EXT_A, "X-API-Key": "wrong"}
        resp = api_client.client.get("/api/whitelist/extension", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid extension credentials"

    def test_valid_credentials(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/whitelist/extension", headers=extension_headers(EXT_A))
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        assert resp.json()["success"] is True

    def test_human_token_does_not_satisfy_extension_route(self, api_client: ApiContext) -> None:
        headers = {"Authorization": f"Bearer {api_client.admin_token}"}
        resp = api_client.client.post("/api/activity", json={"userId": "u", "action": "LOGIN"}, headers=headers)
        assert resp.status_code == 401

    def test_extension_credentials_do_not_satisfy_human_route(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/whitelist", headers=extension_headers(EXT_A))
        assert resp.status_code == 401
