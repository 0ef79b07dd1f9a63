"""Shared test fixtures for the checkout defense layer."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from src.config import DetectionConfig, RateLimitConfig, Settings
from src.payments.processor import (
    CreatedIntent,
    IntentSummary,
    StripePaymentProcessor,
)
from src.security.events import SecurityEventLogger

# Passes the User-Agent and Content-Type gates
BROWSER_HEADERS = {
    "user-agent": "Mozilla/5.0 (X11; Linux x86_64) TestBrowser/1.0",
    "content-type": "application/json",
}

TEST_WEBHOOK_SECRET = "whsec_test_secret"


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def security_logger(clock: FakeClock) -> SecurityEventLogger:
    return SecurityEventLogger(DetectionConfig(), clock=clock)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def mock_processor() -> MagicMock:
    processor = MagicMock(spec=StripePaymentProcessor)
    processor.create_intent.return_value = CreatedIntent(
        id="pi_123", client_secret="pi_123_secret_abc",
    )
    processor.retrieve_intent.return_value = IntentSummary(
        id="pi_123",
        amount=1000,
        currency="brl",
        status="succeeded",
        created=1_700_000_000,
        payment_method="pm_card_visa",
    )
    return processor


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> Settings:
    """Factory for Settings with test secrets and optional overrides."""
    defaults: dict[str, Any] = {
        "stripe_secret_key": "sk_test_123",
        "stripe_webhook_secret": TEST_WEBHOOK_SECRET,
        "rate_limit": RateLimitConfig(),
        "detection": DetectionConfig(),
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def make_payment_intent(**kwargs: Any) -> dict[str, Any]:
    """Factory for a Stripe PaymentIntent object as delivered in webhooks."""
    defaults: dict[str, Any] = {
        "id": "pi_123",
        "object": "payment_intent",
        "amount": 1000,
        "currency": "brl",
        "status": "requires_payment_method",
        "metadata": {"client_ip": "203.0.113.7"},
        "last_payment_error": None,
    }
    defaults.update(kwargs)
    return defaults
