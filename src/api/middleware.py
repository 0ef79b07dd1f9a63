"""ASGI middleware: security headers, rate limiting and request header gates."""

from __future__ import annotations

import logging
import math

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.models import RateLimitDecision
from src.ratelimit.limiter import FixedWindowRateLimiter, RateLimitPolicy
from src.security.client_ip import get_client_ip
from src.security.events import SecurityEventLogger

logger = logging.getLogger(__name__)

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://js.stripe.com; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "font-src 'self' https://fonts.gstatic.com; "
    "img-src 'self' data: https:; "
    "connect-src 'self' https://api.stripe.com; "
    "frame-src https://js.stripe.com https://hooks.stripe.com;"
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}

# Webhook senders are machines: no browser User-Agent or JSON content type required
WEBHOOK_PATH_MARKER = "/webhooks/"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_at)),
    }


class RequestDefenseMiddleware:
    """First line of defense for every inbound request.

    Order: rate limit, then User-Agent and Content-Type gates, then the
    application. Unexpected exceptions escaping the application are turned
    into a generic 500 so no internal detail reaches the caller.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: FixedWindowRateLimiter,
        policy: RateLimitPolicy,
        security_logger: SecurityEventLogger,
        min_user_agent_length: int = 10,
    ) -> None:
        self.app = app
        self._limiter = limiter
        self._policy = policy
        self._security = security_logger
        self._min_user_agent_length = min_user_agent_length

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        path = request.url.path
        ip = get_client_ip(request.headers)
        user_agent = request.headers.get("user-agent")

        extra_headers = dict(SECURITY_HEADERS)
        response_started = False

        async def send_with_headers(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = MutableHeaders(scope=message)
                for name, value in extra_headers.items():
                    headers[name] = value
            await send(message)

        decision = self._policy.check(self._limiter, ip, path)
        if decision is not None:
            extra_headers.update(rate_limit_headers(decision))
            if not decision.admitted:
                self._security.record_rate_limit(ip, path, user_agent)
                response = JSONResponse(
                    {
                        "error": "Too many requests. Try again later.",
                        "retryAfter": decision.retry_after,
                    },
                    status_code=429,
                    headers={"Retry-After": str(decision.retry_after)},
                )
                await response(scope, receive, send_with_headers)
                return

            rejection = self._check_headers(request, path, ip, user_agent)
            if rejection is not None:
                await rejection(scope, receive, send_with_headers)
                return

        try:
            await self.app(scope, receive, send_with_headers)
        except Exception:
            logger.exception("Unhandled error while serving %s %s", request.method, path)
            if response_started:
                raise
            response = JSONResponse({"error": "Internal server error"}, status_code=500)
            await response(scope, receive, send_with_headers)

    def _check_headers(
        self, request: Request, path: str, ip: str, user_agent: str | None,
    ) -> Response | None:
        if WEBHOOK_PATH_MARKER in path:
            return None

        if not user_agent or len(user_agent) < self._min_user_agent_length:
            self._security.record_invalid_request(ip, path, "invalid_user_agent", user_agent)
            return JSONResponse({"error": "Invalid User-Agent"}, status_code=400)

        if request.method == "POST":
            content_type = request.headers.get("content-type", "")
            if "application/json" not in content_type:
                self._security.record_invalid_request(
                    ip, path, "unsupported_content_type", user_agent,
                )
                return JSONResponse(
                    {"error": "Content-Type must be application/json"},
                    status_code=400,
                )
        return None
