"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 response with status, version, and database fields
  - No session or GitHub call required
  - /health is not swallowed by the web router's catch-all route
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tests.conftest import WebHarness


def test_health_returns_200(web: WebHarness) -> None:
    resp = web.client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["database"] == "ok"
    assert "version" in data


def test_health_does_not_touch_github(web: WebHarness) -> None:
    web.client.get("/health")
    web.provider.introspect.assert_not_called()
    web.provider.fetch_user.assert_not_called()
