"""
tests/test_activity.py -- Integration tests for /api/activity/*.

Coverage:
  - guardian extension reports events; origin address comes from the socket
  - unknown actions rejected with a field error
  - self-or-admin read rule on /activity/user/{userId}
  - admin pagination, action and date-range filters, stats, per-extension view
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import ApiContext, bearer, extension_headers

VIOLATOR = "v" * 32


def _report(ctx: ApiContext, **body):
    return ctx.client.post("/api/activity", json=body, headers=extension_headers())


class TestLogActivity:
    def test_extension_reports_violation(self, api_client: ApiContext) -> None:
        resp = _report(
            api_client,
            userId="browser-profile-1",
            action="WHITELIST_VIOLATION",
            extensionId=VIOLATOR,
            browserInfo={"name": "Chrome", "version": "126"},
            details={"reason": "not whitelisted"},
        )
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        data = resp.json()["data"]
        assert data["action"] == "WHITELIST_VIOLATION"
        assert data["extensionId"] == VIOLATOR
        assert data["browserInfo"]["name"] == "Chrome"
        assert data["ipAddress"] == "testclient"
        assert data["timestamp"]

    def test_defaults_for_optional_fields(self, api_client: ApiContext) -> None:
        resp = _report(api_client, userId="browser-profile-1", action="BROWSER_CLOSED")
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["browserInfo"] == {}
        assert data["details"] == {}

    def test_unknown_action(self, api_client: ApiContext) -> None:
        resp = _report(api_client, userId="browser-profile-1", action="TELEPORTED")
        assert resp.status_code == 400
        assert any(e["field"] == "action" for e in resp.json()["errors"])

    def test_missing_user_id(self, api_client: ApiContext) -> None:
        resp = _report(api_client, action="BROWSER_CLOSED")
        assert resp.status_code == 400
        assert any(e["field"] == "userId" for e in resp.json()["errors"])


class TestUserActivity:
    def test_user_reads_own_logs(self, api_client: ApiContext) -> None:
        resp = api_client.client.get(
            f"/api/activity/user/{api_client.user.id}", headers=bearer(api_client.user_token)
        )
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        assert resp.json()["success"] is True

    def test_user_cannot_read_others(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/activity/user/browser-profile-1", headers=bearer(api_client.user_token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "Not authorized to view these logs"

    def test_admin_reads_anyone(self, api_client: ApiContext) -> None:
        resp = api_client.client.get(
            "/api/activity/user/browser-profile-1", headers=bearer(api_client.admin_token)
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        assert body["data"][0]["action"] == "BROWSER_CLOSED"


class TestAdminActivity:
    def test_requires_admin(self, api_client: ApiContext) -> None:
        assert api_client.client.get("/api/activity", headers=bearer(api_client.user_token)).status_code == 403
        assert api_client.client.get("/api/activity").status_code == 401

    def test_pagination(self, api_client: ApiContext) -> None:
        for _ in range(3):
            _report(api_client, userId="browser-profile-2", action="COOKIES_CLEARED")
        resp = api_client.client.get(
            "/api/activity", params={"page": 2, "limit": 2}, headers=bearer(api_client.admin_token)
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["pagination"]["page"] == 2
        assert body["pagination"]["limit"] == 2
        assert body["pagination"]["total"] >= 5
        assert body["pagination"]["pages"] == -(-body["pagination"]["total"] // 2)
        assert body["count"] == 2

    def test_action_filter(self, api_client: ApiContext) -> None:
        resp = api_client.client.get(
            "/api/activity", params={"action": "COOKIES_CLEARED"}, headers=bearer(api_client.admin_token)
        )
        body = resp.json()
        assert body["pagination"]["total"] == 3
        assert {e["action"] for e in body["data"]} == {"COOKIES_CLEARED"}

    def test_date_range_filter(self, api_client: ApiContext) -> None:
        now = datetime.now(timezone.utc)
        past = {"startDate": (now - timedelta(days=10)).isoformat(), "endDate": (now - timedelta(days=9)).isoformat()}
        resp = api_client.client.get("/api/activity", params=past, headers=bearer(api_client.admin_token))
        assert resp.json()["pagination"]["total"] == 0

        window = {"startDate": (now - timedelta(hours=1)).isoformat(), "endDate": (now + timedelta(hours=1)).isoformat()}
        resp = api_client.client.get("/api/activity", params=window, headers=bearer(api_client.admin_token))
        assert resp.json()["pagination"]["total"] >= 5

    def test_bad_date(self, api_client: ApiContext) -> None:
        resp = api_client.client.get(
            "/api/activity",
            params={"startDate": "yesterday", "endDate": "today"},
            headers=bearer(api_client.admin_token),
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "startDate"

    def test_stats(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/activity/stats", headers=bearer(api_client.admin_token))
        assert resp.status_code == 200
        data = resp.json()["data"]
        counts = {row["_id"]: row["count"] for row in data["actionCounts"]}
        assert counts["COOKIES_CLEARED"] == 3
        assert data["dailyCounts"][-1]["_id"] == datetime.now(timezone.utc).date().isoformat()
        assert data["activeUsers"][0]["_id"] == "browser-profile-2"

    def test_extension_view(self, api_client: ApiContext) -> None:
        resp = api_client.client.get(f"/api/activity/extension/{VIOLATOR}", headers=bearer(api_client.admin_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["data"][0]["action"] == "WHITELIST_VIOLATION"
