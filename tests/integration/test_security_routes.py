"""Tests for the operator security-report endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.security.events import REASON_FAILED_PAYMENTS, SecurityEventLogger
from tests.conftest import BROWSER_HEADERS, make_settings

TOKEN = "operator-token"
AUTH = {**BROWSER_HEADERS, "authorization": f"Bearer {TOKEN}"}


def _client(app) -> AsyncClient:  # noqa: ANN001
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def populated_logger(security_logger: SecurityEventLogger) -> SecurityEventLogger:
    for _ in range(4):
        security_logger.record_payment_attempt("203.0.113.7", 1000, "brl", False)
    security_logger.record_invalid_request("198.51.100.4", "/api/verify-payment", "invalid_client_secret")
    return security_logger


@pytest.mark.asyncio
async def test_routes_absent_without_token(
    mock_processor: MagicMock, populated_logger: SecurityEventLogger,
) -> None:
    app = create_app(make_settings(), mock_processor, security_logger=populated_logger)
    async with _client(app) as client:
        resp = await client.get("/api/security/report", headers=AUTH)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_missing_bearer_is_401(
    mock_processor: MagicMock, populated_logger: SecurityEventLogger,
) -> None:
    app = create_app(
        make_settings(report_token=TOKEN), mock_processor, security_logger=populated_logger,
    )
    async with _client(app) as client:
        resp = await client.get("/api/security/report", headers=BROWSER_HEADERS)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_wrong_bearer_is_403(
    mock_processor: MagicMock, populated_logger: SecurityEventLogger,
) -> None:
    app = create_app(
        make_settings(report_token=TOKEN), mock_processor, security_logger=populated_logger,
    )
    async with _client(app) as client:
        resp = await client.get(
            "/api/security/report",
            headers={**BROWSER_HEADERS, "authorization": "Bearer guess"},
        )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_report(
    mock_processor: MagicMock, populated_logger: SecurityEventLogger,
) -> None:
    app = create_app(
        make_settings(report_token=TOKEN), mock_processor, security_logger=populated_logger,
    )
    async with _client(app) as client:
        resp = await client.get("/api/security/report", headers=AUTH)

    assert resp.status_code == 200
    report = resp.json()
    assert report["total_events"] == 5
    assert report["events_by_type"] == {"payment_attempt": 4, "invalid_request": 1}
    assert report["top_ips"][0] == {"ip": "203.0.113.7", "count": 4}
    assert report["suspicious_ips"] == [
        {"ip": "203.0.113.7", "reasons": [REASON_FAILED_PAYMENTS]},
    ]


@pytest.mark.asyncio
async def test_events_filtered_by_type(
    mock_processor: MagicMock, populated_logger: SecurityEventLogger,
) -> None:
    app = create_app(
        make_settings(report_token=TOKEN), mock_processor, security_logger=populated_logger,
    )
    async with _client(app) as client:
        resp = await client.get(
            "/api/security/events",
            params={"event_type": "invalid_request", "limit": 10},
            headers=AUTH,
        )
    assert resp.status_code == 200
    events = resp.json()
    assert len(events) == 1
    assert events[0]["ip"] == "198.51.100.4"
    assert events[0]["details"] == {"reason": "invalid_client_secret"}


@pytest.mark.asyncio
async def test_suspicious_lookup(
    mock_processor: MagicMock, populated_logger: SecurityEventLogger,
) -> None:
    app = create_app(
        make_settings(report_token=TOKEN), mock_processor, security_logger=populated_logger,
    )
    async with _client(app) as client:
        flagged = await client.get("/api/security/suspicious/203.0.113.7", headers=AUTH)
        clean = await client.get("/api/security/suspicious/198.51.100.4", headers=AUTH)
    assert flagged.json() == {
        "ip": "203.0.113.7", "is_suspicious": True, "reasons": [REASON_FAILED_PAYMENTS],
    }
    assert clean.json()["is_suspicious"] is False
