"""Payment processor collaborator: a thin adapter over the Stripe API.

The defense layer never authorizes or settles anything itself; it only asks
the processor to create and look up payment intents and to authenticate
webhook deliveries.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import stripe
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class PaymentProcessorError(Exception):
    """The processor rejected a call with a message safe to show the caller."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class WebhookSignatureError(PaymentProcessorError):
    """A webhook payload did not match its signature header."""


class CreatedIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    client_secret: str


class IntentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    amount: int
    currency: str
    status: str
    created: int | None = None
    payment_method: str | None = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    data_object: dict[str, Any]


class PaymentProcessor(Protocol):
    def create_intent(
        self, amount: int, currency: str, metadata: dict[str, str],
    ) -> CreatedIntent: ...

    def retrieve_intent(self, intent_id: str) -> IntentSummary: ...

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent: ...


def _payment_method_id(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


class StripePaymentProcessor:
    """Card-only payment intents on Stripe."""

    def __init__(self, secret_key: str, webhook_secret: str) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    def create_intent(
        self, amount: int, currency: str, metadata: dict[str, str],
    ) -> CreatedIntent:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._secret_key,
                amount=amount,
                currency=currency,
                payment_method_types=["card"],
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            raise PaymentProcessorError(
                exc.user_message or str(exc), code=exc.code,
            ) from exc
        logger.info("Created payment intent %s", intent.id)
        return CreatedIntent(id=intent.id, client_secret=intent.client_secret)

    def retrieve_intent(self, intent_id: str) -> IntentSummary:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self._secret_key)
        except stripe.StripeError as exc:
            raise PaymentProcessorError(
                exc.user_message or str(exc), code=exc.code,
            ) from exc
        return IntentSummary(
            id=intent.id,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
            created=intent.created,
            payment_method=_payment_method_id(getattr(intent, "payment_method", None)),
        )

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, self._webhook_secret,
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc
        except ValueError as exc:
            # Payload is not valid JSON
            raise WebhookSignatureError(f"Invalid payload: {exc}") from exc
        # Plain dicts for handlers, read from the now-authenticated body
        body = json.loads(payload)
        return WebhookEvent(
            id=event.id,
            type=event.type,
            data_object=body["data"]["object"],
        )
