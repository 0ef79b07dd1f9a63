"""Request body schemas for the checkout API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.models import FieldIssue, ValidationOutcome

MIN_AMOUNT = 50  # smallest currency unit, e.g. R$ 0,50
MAX_AMOUNT = 100_000_000  # R$ 1.000.000,00

# Stripe's own metadata limits
_MAX_METADATA_KEYS = 50
_MAX_METADATA_KEY_LENGTH = 40
_MAX_METADATA_VALUE_LENGTH = 500


class CreatePaymentIntentRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: int = Field(strict=True, ge=MIN_AMOUNT, le=MAX_AMOUNT)
    currency: str = Field(strict=True, min_length=3, max_length=3, pattern=r"^[a-zA-Z]{3}$")
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("amount", mode="before")
    @classmethod
    def _whole_float_to_int(cls, value: Any) -> Any:
        # JSON has one number type: 1000.0 is the integer 1000
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    @field_validator("metadata")
    @classmethod
    def _check_metadata(cls, value: dict[str, str]) -> dict[str, str]:
        if len(value) > _MAX_METADATA_KEYS:
            raise ValueError(f"at most {_MAX_METADATA_KEYS} metadata keys are allowed")
        for key, item in value.items():
            if len(key) > _MAX_METADATA_KEY_LENGTH:
                raise ValueError(f"metadata key '{key[:20]}' is too long")
            if len(item) > _MAX_METADATA_VALUE_LENGTH:
                raise ValueError(f"metadata value for '{key}' is too long")
        return value


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_secret: str = Field(
        strict=True, min_length=1, pattern=r"^pi_[a-zA-Z0-9]+_secret_[a-zA-Z0-9]+$",
    )


def payment_intent_id_from_secret(client_secret: str) -> str:
    """``pi_123_secret_abc`` -> ``pi_123``."""
    return client_secret.split("_secret_")[0]


def validate_payload(model: type[BaseModel], payload: Any) -> ValidationOutcome:
    """Validate ``payload`` against ``model`` without raising.

    Failures come back as one issue per offending field.
    """
    try:
        parsed = model.model_validate(payload)
    except ValidationError as exc:
        issues = [
            FieldIssue(
                field=".".join(str(part) for part in err["loc"]) or "body",
                message=err["msg"],
            )
            for err in exc.errors()
        ]
        return ValidationOutcome(valid=False, issues=issues)
    return ValidationOutcome(valid=True, data=parsed.model_dump())
