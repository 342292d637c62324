# Overview: Request payload cleaning and the shop-wide money/quantity limits.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

# 9,999,999.99 in the shop's currency
MAX_AMOUNT_CENTS = 999_999_999

# Upper bound for a stock level or a sale line quantity
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """Bad input; routes answer 400 with `details` when given."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """State conflict (duplicate close, stale price, second shop): 409."""


class NotFoundError(LookupError):
    """No such record in the caller's shop: 404."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which must be present on create."""
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(key: str, value: Any) -> int:
    """
    Accept an int or a string of digits with optional sign.

    Booleans, floats, decimal strings ("1.0") and exponents ("1e3") are
    refused so that money never gets silently rounded.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _clean_field(col, raw: Any):
    """Coerce one non-null value to its column's type and enforce String(n)."""
    coltype = col.type

    if isinstance(coltype, Boolean):
        if not isinstance(raw, bool):
            raise ValidationError(f"{col.key} must be a boolean")
        return raw

    if isinstance(coltype, Integer):
        return coerce_int(col.key, raw)

    if isinstance(coltype, (String, Text)):
        if isinstance(raw, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        text = str(raw).strip()
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        limit = getattr(coltype, "length", None)
        if limit and len(text) > limit:
            raise ValidationError(f"{col.key} exceeds max length {limit}")
        return text

    return raw


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch of column values for `model`.

    Keys outside policy.writable_fields are refused rather than ignored.
    With partial=False every policy.required_on_create key must be present.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean_field(col, raw)
    return patch


def check_amount(key: str, value: int | None, *, allow_none: bool = True) -> None:
    if value is None:
        if not allow_none:
            raise ValidationError(f"{key} is required")
        return
    if not 0 <= value <= MAX_AMOUNT_CENTS:
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f})")


def check_quantity(key: str, value: int | None) -> None:
    if value is not None and not 0 <= value <= MAX_QUANTITY:
        raise ValidationError(f"{key} must be between 0 and {MAX_QUANTITY}")


def enforce_rules_product(patch: dict) -> None:
    for key in ("cost_price_cents", "selling_price_cents"):
        check_amount(key, patch.get(key))
    for key in ("current_stock", "minimum_stock"):
        check_quantity(key, patch.get(key))

    # "" would collide with other blank codes under the per-shop unique index
    if patch.get("code") == "":
        patch["code"] = None


def enforce_rules_customer(patch: dict) -> None:
    check_amount("debt_limit_cents", patch.get("debt_limit_cents"))


def json_object(payload: Any) -> dict:
    """Request body as a dict; a missing body is {} and any other JSON type is refused."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
