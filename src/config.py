"""Runtime configuration for the checkout request-defense layer."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field


class RateLimitConfig(BaseModel):
    """Fixed-window limits applied per (client IP, path)."""

    model_config = ConfigDict(frozen=True)

    window_seconds: int = Field(default=900, gt=0)  # 15 minutes
    max_requests: int = Field(default=100, gt=0)
    strict_max_requests: int = Field(default=10, gt=0)
    strict_path_markers: tuple[str, ...] = ("payment", "webhook")
    protected_prefix: str = "/api/"
    max_tracked_keys: int = Field(default=10_000, gt=0)


class DetectionConfig(BaseModel):
    """Event buffer capacity and suspicious-pattern thresholds."""

    model_config = ConfigDict(frozen=True)

    event_capacity: int = Field(default=1000, gt=0)
    lookback_events: int = Field(default=50, gt=0)
    max_rate_limit_events: int = Field(default=5, ge=0)
    max_invalid_requests: int = Field(default=10, ge=0)
    max_failed_payments: int = Field(default=3, ge=0)
    burst_window_seconds: int = Field(default=300, gt=0)
    max_burst_events: int = Field(default=20, ge=0)
    report_top_ips: int = Field(default=10, gt=0)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    report_token: str | None = None
    injection_rules_path: str | None = None
    min_user_agent_length: int = Field(default=10, ge=0)
    max_body_bytes: int = Field(default=1_048_576, gt=0)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)

    @classmethod
    def from_env(cls) -> Settings:
        """Create Settings from environment variables."""
        rate_limit = RateLimitConfig(
            window_seconds=int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "900")),
            max_requests=int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", "100")),
            strict_max_requests=int(
                os.environ.get("RATE_LIMIT_STRICT_MAX_REQUESTS", "10"),
            ),
            max_tracked_keys=int(os.environ.get("RATE_LIMIT_MAX_TRACKED_KEYS", "10000")),
        )
        detection = DetectionConfig(
            event_capacity=int(os.environ.get("SECURITY_EVENT_CAPACITY", "1000")),
        )
        return cls(
            stripe_secret_key=os.environ["STRIPE_SECRET_KEY"],
            stripe_webhook_secret=os.environ["STRIPE_WEBHOOK_SECRET"],
            report_token=os.environ.get("SECURITY_REPORT_TOKEN") or None,
            injection_rules_path=os.environ.get("INJECTION_RULES_PATH") or None,
            rate_limit=rate_limit,
            detection=detection,
        )
