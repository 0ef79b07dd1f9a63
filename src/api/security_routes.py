"""Operator endpoints over the in-memory security event log.

Provides endpoints for:
- The aggregate security report
- Recent events, optionally filtered by type or IP
- Suspicious-pattern detection for a single IP
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.models import SecurityEventType
from src.security.events import SecurityEventLogger

_MAX_EVENTS = 1000


def create_security_router(
    security_logger: SecurityEventLogger,
    token: str,
) -> APIRouter:
    """Create the security API router, guarded by a bearer token."""
    router = APIRouter(prefix="/api/security")
    expected = token.encode()

    def check_auth(request: Request) -> JSONResponse | None:
        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Bearer "):
            return JSONResponse({"error": "Authentication required"}, status_code=401)
        if not hmac.compare_digest(auth_header[7:].encode(), expected):
            return JSONResponse({"error": "Access denied"}, status_code=403)
        return None

    @router.get("/report")
    async def report(request: Request) -> JSONResponse:
        denied = check_auth(request)
        if denied is not None:
            return denied
        result = security_logger.generate_security_report()
        return JSONResponse(result.model_dump(mode="json"))

    @router.get("/events")
    async def events(
        request: Request,
        limit: int = 100,
        event_type: SecurityEventType | None = None,
        ip: str | None = None,
    ) -> JSONResponse:
        denied = check_auth(request)
        if denied is not None:
            return denied
        limit = max(1, min(limit, _MAX_EVENTS))
        found = security_logger.recent_events(limit, event_type=event_type, ip=ip)
        return JSONResponse([event.model_dump(mode="json") for event in found])

    @router.get("/suspicious/{ip}")
    async def suspicious(ip: str, request: Request) -> JSONResponse:
        denied = check_auth(request)
        if denied is not None:
            return denied
        result = security_logger.detect_suspicious_patterns(ip)
        return JSONResponse({"ip": ip, **result.model_dump()})

    return router
