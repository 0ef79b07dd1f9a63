"""Security event logger: a bounded in-memory ring buffer with pattern detection."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from src.config import DetectionConfig
from src.models import (
    IpActivity,
    SecurityEvent,
    SecurityEventType,
    SecurityReport,
    SuspicionResult,
    SuspiciousIp,
)

logger = logging.getLogger(__name__)

PAYMENT_INTENT_PATH = "/api/create-payment-intent"
STRIPE_WEBHOOK_PATH = "/api/webhooks/stripe"

REASON_RATE_LIMIT = "Multiple rate limit violations"
REASON_INVALID_REQUESTS = "Multiple invalid requests"
REASON_FAILED_PAYMENTS = "Multiple failed payment attempts"
REASON_BURST = "Excessive activity in a short period"


class SecurityEventLogger:
    """Process-wide, append-only log of security decisions.

    Holds at most ``config.event_capacity`` events; once full, the oldest
    event is dropped for every new one. All access goes through a lock so
    concurrent request handlers can share one instance.
    """

    def __init__(
        self,
        config: DetectionConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or DetectionConfig()
        self._clock = clock
        self._events: deque[SecurityEvent] = deque(maxlen=self._config.event_capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._config.event_capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    # --- Recording ---

    def record(
        self,
        event_type: SecurityEventType,
        ip: str,
        path: str,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> SecurityEvent:
        event = SecurityEvent(
            event_type=event_type,
            ip=ip,
            path=path,
            user_agent=user_agent,
            details=dict(details or {}),
            occurred_at=datetime.fromtimestamp(self._clock(), UTC),
        )
        with self._lock:
            self._events.append(event)
        logger.info("Security event: %s", event.model_dump_json())
        return event

    def record_rate_limit(
        self, ip: str, path: str, user_agent: str | None = None,
    ) -> SecurityEvent:
        return self.record(
            SecurityEventType.RATE_LIMIT, ip, path, user_agent,
            {"message": "Rate limit exceeded"},
        )

    def record_invalid_request(
        self, ip: str, path: str, reason: str, user_agent: str | None = None,
    ) -> SecurityEvent:
        return self.record(
            SecurityEventType.INVALID_REQUEST, ip, path, user_agent, {"reason": reason},
        )

    def record_payment_attempt(
        self,
        ip: str,
        amount: int,
        currency: str,
        success: bool,
        user_agent: str | None = None,
    ) -> SecurityEvent:
        return self.record(
            SecurityEventType.PAYMENT_ATTEMPT, ip, PAYMENT_INTENT_PATH, user_agent,
            {"amount": amount, "currency": currency, "success": success},
        )

    def record_webhook_received(
        self, ip: str, event_type: str, event_id: str,
    ) -> SecurityEvent:
        return self.record(
            SecurityEventType.WEBHOOK_RECEIVED, ip, STRIPE_WEBHOOK_PATH, None,
            {"event_type": event_type, "event_id": event_id},
        )

    def record_suspicious_activity(
        self,
        ip: str,
        path: str,
        reason: str,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> SecurityEvent:
        return self.record(
            SecurityEventType.SUSPICIOUS_ACTIVITY, ip, path, user_agent,
            {"reason": reason, **(details or {})},
        )

    # --- Queries ---

    def recent_events(
        self,
        limit: int = 100,
        event_type: SecurityEventType | None = None,
        ip: str | None = None,
    ) -> list[SecurityEvent]:
        """Return up to ``limit`` of the newest matching events, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            matched: list[SecurityEvent] = []
            for event in reversed(self._events):
                if event_type is not None and event.event_type != event_type:
                    continue
                if ip is not None and event.ip != ip:
                    continue
                matched.append(event)
                if len(matched) == limit:
                    break
        matched.reverse()
        return matched

    def events_by_type(
        self, event_type: SecurityEventType, limit: int = 100,
    ) -> list[SecurityEvent]:
        return self.recent_events(limit, event_type=event_type)

    def events_by_ip(self, ip: str, limit: int = 100) -> list[SecurityEvent]:
        return self.recent_events(limit, ip=ip)

    # --- Detection ---

    def detect_suspicious_patterns(self, ip: str) -> SuspicionResult:
        """Score the IP's latest events against the configured thresholds."""
        events = self.events_by_ip(ip, self._config.lookback_events)
        return self._evaluate(events, self._clock())

    def generate_security_report(self) -> SecurityReport:
        """Aggregate over every retained event."""
        with self._lock:
            snapshot = list(self._events)
        now = self._clock()

        by_type: Counter[str] = Counter()
        by_ip: Counter[str] = Counter()
        for event in snapshot:
            by_type[event.event_type.value] += 1
            by_ip[event.ip] += 1

        # Counter.most_common keeps first-seen order among equal counts
        top_ips = [
            IpActivity(ip=ip, count=count)
            for ip, count in by_ip.most_common(self._config.report_top_ips)
        ]

        latest = self._latest_per_ip(snapshot)
        suspicious: list[SuspiciousIp] = []
        for ip in by_ip:
            result = self._evaluate(latest[ip], now)
            if result.is_suspicious:
                suspicious.append(SuspiciousIp(ip=ip, reasons=result.reasons))

        return SecurityReport(
            total_events=len(snapshot),
            events_by_type=dict(by_type),
            top_ips=top_ips,
            suspicious_ips=suspicious,
            generated_at=datetime.fromtimestamp(now, UTC),
        )

    def _latest_per_ip(
        self, snapshot: list[SecurityEvent],
    ) -> dict[str, list[SecurityEvent]]:
        per_ip: dict[str, list[SecurityEvent]] = {}
        for event in reversed(snapshot):
            bucket = per_ip.setdefault(event.ip, [])
            if len(bucket) < self._config.lookback_events:
                bucket.append(event)
        for bucket in per_ip.values():
            bucket.reverse()
        return per_ip

    def _evaluate(self, events: Iterable[SecurityEvent], now: float) -> SuspicionResult:
        cfg = self._config
        rate_limits = invalid = failed_payments = burst = 0
        for event in events:
            if event.event_type == SecurityEventType.RATE_LIMIT:
                rate_limits += 1
            elif event.event_type == SecurityEventType.INVALID_REQUEST:
                invalid += 1
            elif (
                event.event_type == SecurityEventType.PAYMENT_ATTEMPT
                and event.details.get("success") is False
            ):
                failed_payments += 1
            if now - event.occurred_at.timestamp() < cfg.burst_window_seconds:
                burst += 1

        reasons: list[str] = []
        if rate_limits > cfg.max_rate_limit_events:
            reasons.append(REASON_RATE_LIMIT)
        if invalid > cfg.max_invalid_requests:
            reasons.append(REASON_INVALID_REQUESTS)
        if failed_payments > cfg.max_failed_payments:
            reasons.append(REASON_FAILED_PAYMENTS)
        if burst > cfg.max_burst_events:
            reasons.append(REASON_BURST)
        return SuspicionResult(is_suspicious=bool(reasons), reasons=reasons)
