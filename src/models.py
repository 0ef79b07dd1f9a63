"""Shared Pydantic data models for the checkout defense layer."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class SecurityEventType(str, Enum):
    RATE_LIMIT = "rate_limit"
    INVALID_REQUEST = "invalid_request"
    PAYMENT_ATTEMPT = "payment_attempt"
    WEBHOOK_RECEIVED = "webhook_received"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


# --- Security Event Models ---


def _now_utc() -> datetime:
    return datetime.now(UTC)


class SecurityEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: SecurityEventType
    ip: str
    path: str
    user_agent: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=_now_utc)


class SuspicionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_suspicious: bool
    reasons: list[str]


class IpActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str
    count: int = Field(ge=0)


class SuspiciousIp(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str
    reasons: list[str]


class SecurityReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_events: int = Field(ge=0)
    events_by_type: dict[str, int]
    top_ips: list[IpActivity]
    suspicious_ips: list[SuspiciousIp]
    generated_at: datetime = Field(default_factory=_now_utc)


# --- Rate Limit Models ---


class RateLimitDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    admitted: bool
    limit: int = Field(ge=0)
    remaining: int = Field(ge=0)
    reset_at: float  # epoch seconds
    retry_after: int = Field(ge=0)  # whole seconds until reset_at


# --- Validation Models ---


class InjectionRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    pattern: str
    description: str


class InjectionScanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    detected: bool
    patterns: list[str]


class FieldIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ValidationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    issues: list[FieldIssue] = Field(default_factory=list)
    data: dict[str, Any] | None = None
