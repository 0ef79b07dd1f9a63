"""Markup and script injection detector for raw request bodies."""

from __future__ import annotations

import json
import re
from pathlib import Path

from src.models import InjectionRule, InjectionScanResult

DEFAULT_RULES: tuple[InjectionRule, ...] = (
    InjectionRule(
        id="INJ-001", name="script_tag", pattern=r"<script",
        description="Inline <script> element",
    ),
    InjectionRule(
        id="INJ-002", name="javascript_uri", pattern=r"javascript:",
        description="javascript: URI scheme",
    ),
    InjectionRule(
        id="INJ-003", name="event_handler_attribute", pattern=r"on\w+\s*=",
        description="Inline event handler attribute such as onerror=",
    ),
    InjectionRule(
        id="INJ-004", name="html_data_uri", pattern=r"data:text/html",
        description="data: URI carrying an HTML document",
    ),
    InjectionRule(
        id="INJ-005", name="vbscript_uri", pattern=r"vbscript:",
        description="vbscript: URI scheme",
    ),
    InjectionRule(
        id="INJ-006", name="iframe_tag", pattern=r"<iframe",
        description="Embedded <iframe> element",
    ),
    InjectionRule(
        id="INJ-007", name="object_tag", pattern=r"<object",
        description="Embedded <object> element",
    ),
    InjectionRule(
        id="INJ-008", name="embed_tag", pattern=r"<embed",
        description="Embedded <embed> element",
    ),
    InjectionRule(
        id="INJ-009", name="eval_call", pattern=r"eval\s*\(",
        description="eval( call",
    ),
    InjectionRule(
        id="INJ-010", name="css_expression", pattern=r"expression\s*\(",
        description="Legacy CSS expression( call",
    ),
)


def load_rules_from_file(rules_path: str) -> list[InjectionRule]:
    path = Path(rules_path)
    if not path.exists():
        raise FileNotFoundError(f"Injection rules file not found: {rules_path}")
    raw = json.loads(path.read_text())
    return [InjectionRule.model_validate(r) for r in raw]


class InjectionDetector:
    """Case-insensitive signature scan over untrusted text."""

    def __init__(self, rules: list[InjectionRule] | tuple[InjectionRule, ...] = DEFAULT_RULES) -> None:
        self._rules = list(rules)
        self._compiled = [
            (rule, re.compile(rule.pattern, re.IGNORECASE))
            for rule in self._rules
        ]

    @classmethod
    def from_file(cls, rules_path: str) -> InjectionDetector:
        return cls(load_rules_from_file(rules_path))

    @property
    def rules(self) -> list[InjectionRule]:
        return list(self._rules)

    def scan(self, text: str) -> InjectionScanResult:
        """Return the names of every rule that matches ``text``."""
        patterns = [rule.name for rule, pattern in self._compiled if pattern.search(text)]
        return InjectionScanResult(detected=bool(patterns), patterns=patterns)

    def detects(self, text: str) -> bool:
        return any(pattern.search(text) for _, pattern in self._compiled)
