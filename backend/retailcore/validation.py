# Overview: Boundary validation for JSON payloads; integers only for money and quantities.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# 100% expressed in basis points
MAX_BPS = 10_000

# Bounds of a 32-bit Integer column; larger values overflow the driver or the column
MAX_INT_COLUMN = 2**31 - 1
MIN_INT_COLUMN = -(2**31)

_PLAIN_INT = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may send for a model.

    - writable_fields: allow-list; anything else in the payload is rejected
    - required_on_create: must be present and non-empty on create and on
      full-replace updates
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _in_column_range(number: int, field_name: str) -> int:
    if not MIN_INT_COLUMN <= number <= MAX_INT_COLUMN:
        raise ValidationError(
            f"{field_name} is out of range",
            details={field_name: str(number), "max": MAX_INT_COLUMN},
        )
    return number


def coerce_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings that fit a 32-bit Integer column.
    Rejects bools, floats, decimal strings and scientific notation so that no
    binary floating point value ever reaches a quantity or money column.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return _in_column_range(value, field_name)
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        if "e" in text.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if "." in text:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        if _PLAIN_INT.fullmatch(text):
            return _in_column_range(int(text), field_name)
    raise ValidationError(f"{field_name} must be an integer")


def coerce_text(value: Any, field_name: str, *, max_length: int, required: bool = True) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    text = value.strip()
    if not text:
        if required:
            raise ValidationError(f"{field_name} cannot be blank")
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field_name} exceeds max length {max_length}")
    return text


def _coerce_column(col, value: Any):
    """Normalize one non-null value according to its column type."""
    if isinstance(col.type, Integer):
        return coerce_int(value, col.key)

    if isinstance(col.type, (String, Text)):
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValidationError(f"{col.key} must be a string")
        text = str(value).strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(col.type, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")
        return text

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON object against the policy and the model's column metadata.

    partial=False enforces required_on_create; partial=True only checks the
    keys that were sent. Returns a patch dict holding normalized values for
    writable columns only.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
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
            patch[key] = _coerce_column(col, raw)

    return patch


def enforce_rules_item(patch: dict) -> None:
    """Range rules for inventory item fields."""
    price = patch.get("price_cents")
    if price is not None:
        enforce_rules_money("price_cents", price)
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    for name in ("stock", "reorder_point"):
        if patch.get(name) is not None and patch[name] < 0:
            raise ValidationError(f"{name} must be >= 0")


def enforce_rules_member(patch: dict) -> None:
    email = patch.get("email")
    if email is not None and "@" not in email:
        raise ValidationError("email must be a valid email address")


def enforce_rules_money(field_name: str, value: int) -> None:
    if value < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    if value > MAX_INT_COLUMN:
        raise ValidationError(f"{field_name} is out of range")


def enforce_rules_bps(field_name: str, value: int) -> None:
    if not 0 <= value <= MAX_BPS:
        raise ValidationError(f"{field_name} must be between 0 and {MAX_BPS}")
