"""FastAPI checkout application."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from src.api.middleware import RequestDefenseMiddleware
from src.api.security_routes import create_security_router
from src.config import Settings
from src.payments.processor import (
    PaymentProcessor,
    PaymentProcessorError,
    StripePaymentProcessor,
    WebhookSignatureError,
)
from src.payments.webhooks import WebhookDispatcher
from src.ratelimit.limiter import FixedWindowRateLimiter, RateLimitPolicy
from src.security.client_ip import get_client_ip
from src.security.events import PAYMENT_INTENT_PATH, STRIPE_WEBHOOK_PATH, SecurityEventLogger
from src.validation.injection import InjectionDetector
from src.validation.schemas import (
    CreatePaymentIntentRequest,
    VerifyPaymentRequest,
    payment_intent_id_from_secret,
    validate_payload,
)

logger = logging.getLogger(__name__)

VERIFY_PAYMENT_PATH = "/api/verify-payment"

_INTERNAL_ERROR = {"error": "Internal server error"}
_BODY_EXCERPT_LENGTH = 500


def create_app_from_env() -> FastAPI:
    """Build the app from STRIPE_* and RATE_LIMIT_* environment variables (uvicorn --factory)."""
    settings = Settings.from_env()
    processor = StripePaymentProcessor(
        settings.stripe_secret_key, settings.stripe_webhook_secret,
    )
    return create_app(settings, processor)


def create_app(
    settings: Settings,
    processor: PaymentProcessor,
    security_logger: SecurityEventLogger | None = None,
    limiter: FixedWindowRateLimiter | None = None,
    detector: InjectionDetector | None = None,
) -> FastAPI:
    """Create the checkout API with the request-defense layer in front."""
    security_logger = security_logger or SecurityEventLogger(settings.detection)
    limiter = limiter or FixedWindowRateLimiter(settings.rate_limit.max_tracked_keys)
    if detector is None:
        detector = (
            InjectionDetector.from_file(settings.injection_rules_path)
            if settings.injection_rules_path
            else InjectionDetector()
        )
    dispatcher = WebhookDispatcher(security_logger)

    app = FastAPI(docs_url=None, redoc_url=None)
    app.state.security_logger = security_logger
    app.state.rate_limiter = limiter

    async def read_json(
        request: Request, ip: str, user_agent: str | None,
    ) -> tuple[str, Any, JSONResponse | None]:
        """Read the body once; returns (text, parsed, error response)."""
        path = request.url.path
        limit = settings.max_body_bytes

        def too_large() -> tuple[str, Any, JSONResponse]:
            security_logger.record_invalid_request(ip, path, "body_too_large", user_agent)
            return "", None, JSONResponse({"error": "Request body too large"}, status_code=413)

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            return too_large()

        # Content-Length may be absent (chunked) or wrong, so the read is capped too
        chunks: list[bytes] = []
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if received > limit:
                return too_large()
            chunks.append(chunk)
        text = b"".join(chunks).decode(errors="replace")
        try:
            return text, json.loads(text), None
        except json.JSONDecodeError:
            return text, None, None

    def reject_injection(
        path: str, ip: str, user_agent: str | None, text: str, patterns: list[str],
    ) -> JSONResponse:
        security_logger.record_suspicious_activity(
            ip, path, "injection_attempt", user_agent,
            {"patterns": patterns, "body": text[:_BODY_EXCERPT_LENGTH]},
        )
        return JSONResponse({"error": "Invalid data detected"}, status_code=400)

    def reject_malformed(path: str, ip: str, user_agent: str | None) -> JSONResponse:
        security_logger.record_invalid_request(ip, path, "malformed_json", user_agent)
        return JSONResponse({"error": "Malformed JSON body"}, status_code=400)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(PAYMENT_INTENT_PATH)
    async def create_payment_intent(request: Request) -> JSONResponse:
        path = PAYMENT_INTENT_PATH
        ip = get_client_ip(request.headers)
        user_agent = request.headers.get("user-agent")

        text, payload, error = await read_json(request, ip, user_agent)
        if error is not None:
            return error

        # Injection scan runs before anything else looks at the body
        scan = detector.scan(text)
        if not scan.detected and payload is not None:
            # Escaped markup such as <script only shows once decoded
            scan = detector.scan(json.dumps(payload, ensure_ascii=False))
        if scan.detected:
            return reject_injection(path, ip, user_agent, text, scan.patterns)
        if payload is None:
            return reject_malformed(path, ip, user_agent)

        outcome = validate_payload(CreatePaymentIntentRequest, payload)
        if not outcome.valid or outcome.data is None:
            security_logger.record_invalid_request(
                ip, path, "schema_validation_failed", user_agent,
            )
            return JSONResponse(
                {
                    "error": "Invalid request data",
                    "details": [issue.model_dump() for issue in outcome.issues],
                },
                status_code=400,
            )

        amount = round(outcome.data["amount"])
        currency = outcome.data["currency"].lower()
        if amount <= 0:
            return JSONResponse({"error": "Amount must be greater than 0"}, status_code=400)

        metadata = {
            **outcome.data["metadata"],
            "integration_check": "accept_a_payment",
            "created_at": datetime.now(UTC).isoformat(),
            "client_ip": ip,
        }

        try:
            intent = await run_in_threadpool(
                processor.create_intent, amount, currency, metadata,
            )
        except PaymentProcessorError as exc:
            logger.warning("Payment intent rejected by processor: %s", exc.message)
            security_logger.record_payment_attempt(ip, amount, currency, False, user_agent)
            return JSONResponse({"error": exc.message}, status_code=400)
        except Exception:
            logger.exception("Payment intent creation failed")
            security_logger.record_payment_attempt(ip, amount, currency, False, user_agent)
            return JSONResponse(_INTERNAL_ERROR, status_code=500)

        security_logger.record_payment_attempt(ip, amount, currency, True, user_agent)
        return JSONResponse({
            "clientSecret": intent.client_secret,
            "paymentIntentId": intent.id,
        })

    @app.post(VERIFY_PAYMENT_PATH)
    async def verify_payment(request: Request) -> JSONResponse:
        path = VERIFY_PAYMENT_PATH
        ip = get_client_ip(request.headers)
        user_agent = request.headers.get("user-agent")

        _, payload, error = await read_json(request, ip, user_agent)
        if error is not None:
            return error
        if payload is None:
            return reject_malformed(path, ip, user_agent)

        outcome = validate_payload(VerifyPaymentRequest, payload)
        if not outcome.valid or outcome.data is None:
            security_logger.record_invalid_request(
                ip, path, "invalid_client_secret", user_agent,
            )
            return JSONResponse(
                {
                    "error": "Invalid client secret",
                    "details": [issue.model_dump() for issue in outcome.issues],
                },
                status_code=400,
            )

        intent_id = payment_intent_id_from_secret(outcome.data["client_secret"])
        try:
            summary = await run_in_threadpool(processor.retrieve_intent, intent_id)
        except PaymentProcessorError as exc:
            logger.warning("Payment lookup rejected by processor: %s", exc.message)
            return JSONResponse({"error": exc.message}, status_code=400)
        except Exception:
            logger.exception("Payment verification failed")
            return JSONResponse(_INTERNAL_ERROR, status_code=500)

        return JSONResponse({
            "status": "succeeded" if summary.status == "succeeded" else "failed",
            "payment_intent": summary.model_dump(),
        })

    @app.post(STRIPE_WEBHOOK_PATH)
    async def stripe_webhook(request: Request) -> JSONResponse:
        path = STRIPE_WEBHOOK_PATH
        ip = get_client_ip(request.headers)
        body = await request.body()
        signature = request.headers.get("stripe-signature")

        if not signature:
            security_logger.record_invalid_request(ip, path, "missing_webhook_signature")
            return JSONResponse({"error": "Missing signature"}, status_code=400)

        try:
            event = processor.construct_webhook_event(body, signature)
            security_logger.record_webhook_received(ip, event.type, event.id)
            dispatcher.dispatch(event)
        except WebhookSignatureError as exc:
            security_logger.record_suspicious_activity(
                ip, path, "invalid_webhook_signature", details={"error": exc.message},
            )
            return JSONResponse({"error": "Invalid signature"}, status_code=400)
        except Exception as exc:
            logger.exception("Webhook processing failed")
            security_logger.record_suspicious_activity(
                ip, path, "webhook_processing_error",
                details={"error": type(exc).__name__},
            )
            return JSONResponse(_INTERNAL_ERROR, status_code=500)

        return JSONResponse({"received": True})

    if settings.report_token:
        app.include_router(create_security_router(security_logger, settings.report_token))

    app.add_middleware(
        RequestDefenseMiddleware,
        limiter=limiter,
        policy=RateLimitPolicy(settings.rate_limit),
        security_logger=security_logger,
        min_user_agent_length=settings.min_user_agent_length,
    )

    return app
