"""Dispatch of authenticated Stripe webhook events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from src.payments.processor import WebhookEvent
from src.security.events import SecurityEventLogger

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Routes verified webhook events to per-type handlers.

    Returns the name of the handler that ran, or ``"unhandled"``.
    """

    def __init__(self, security_logger: SecurityEventLogger) -> None:
        self._security = security_logger
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "payment_method.attached": self._payment_method_attached,
        }

    def handled_types(self) -> list[str]:
        return sorted(self._handlers)

    def dispatch(self, event: WebhookEvent) -> str:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Unhandled webhook event %s (%s)", event.type, event.id)
            return "unhandled"
        handler(event.data_object)
        return event.type

    def _payment_succeeded(self, intent: dict[str, Any]) -> None:
        metadata = intent.get("metadata") or {}
        logger.info(
            "Payment succeeded: id=%s amount=%s currency=%s client_ip=%s",
            intent.get("id"), intent.get("amount"), intent.get("currency"),
            metadata.get("client_ip"),
        )

    def _payment_failed(self, intent: dict[str, Any]) -> None:
        error = intent.get("last_payment_error") or {}
        logger.warning(
            "Payment failed: id=%s amount=%s currency=%s error=%s",
            intent.get("id"), intent.get("amount"), intent.get("currency"),
            error.get("message"),
        )
        metadata = intent.get("metadata") or {}
        client_ip = metadata.get("client_ip")
        if client_ip:
            self._security.record_payment_attempt(
                client_ip,
                int(intent.get("amount") or 0),
                str(intent.get("currency") or "unknown"),
                success=False,
            )

    def _payment_method_attached(self, payment_method: dict[str, Any]) -> None:
        logger.info("Payment method attached: %s", payment_method.get("id"))
