from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from posledger.time_utils import parse_iso_datetime


# Maximum money value: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def require_mapping(payload: Any, label: str = "request body") -> dict:
    if payload is None:
        raise ValidationError(f"{label} is required")
    if not isinstance(payload, dict):
        raise ValidationError(f"{label} must be a JSON object")
    return payload


def coerce_int(value: Any, label: str) -> int:
    """
    Strict integer coercion: rejects floats, booleans, decimals and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{label} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{label} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{label} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{label} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{label} must be an integer, not a decimal")
    raise ValidationError(f"{label} must be an integer")


def get_int(
    data: dict,
    key: str,
    *,
    label: str | None = None,
    required: bool = False,
    default: int | None = None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    label = label or key
    raw = data.get(key)
    if raw is None:
        if required:
            raise ValidationError(f"{label} is required")
        return default

    value = coerce_int(raw, label)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{label} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{label} cannot exceed {maximum}")
    return value


def get_cents(
    data: dict,
    key: str,
    *,
    label: str | None = None,
    required: bool = False,
    default: int | None = None,
) -> int | None:
    """Money amounts are non-negative integer cents."""
    return get_int(
        data,
        key,
        label=label,
        required=required,
        default=default,
        minimum=0,
        maximum=MAX_AMOUNT_CENTS,
    )


def get_text(
    data: dict,
    key: str,
    *,
    label: str | None = None,
    required: bool = False,
    default: str | None = None,
    max_length: int | None = None,
) -> str | None:
    label = label or key
    raw = data.get(key)
    text = str(raw).strip() if raw is not None else ""
    if not text:
        if required:
            raise ValidationError(f"{label} is required")
        return default
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{label} exceeds max length {max_length}")
    return text


def get_choice(
    data: dict,
    key: str,
    choices: Iterable[str],
    *,
    label: str | None = None,
    default: str | None = None,
) -> str | None:
    label = label or key
    choices = tuple(choices)
    value = get_text(data, key, label=label, default=default)
    if value is None:
        return None
    if value not in choices:
        raise ValidationError(f"{label} must be one of: {', '.join(choices)}")
    return value


def get_decimal(
    data: dict,
    key: str,
    *,
    label: str | None = None,
    default: Decimal = Decimal("0"),
    minimum: Decimal | None = None,
    maximum: Decimal | None = None,
) -> Decimal:
    label = label or key
    raw = data.get(key)
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationError(f"{label} must be a number")
    if not value.is_finite():
        raise ValidationError(f"{label} must be a number")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{label} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{label} cannot exceed {maximum}")
    return value


def get_datetime(data: dict, key: str, *, label: str | None = None) -> datetime | None:
    label = label or key
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{label} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{label} must be an ISO-8601 datetime")


def get_list(data: dict, key: str, *, label: str | None = None) -> list:
    """Required, non-empty JSON array."""
    label = label or key
    raw = data.get(key)
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"{label} must be a non-empty list")
    return raw
