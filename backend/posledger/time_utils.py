# Overview: Timestamp helpers. Stock dates are stored UTC-naive and serialized with a trailing Z.

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Default purchase, payment and return date when the request gives none."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    Read a request date such as "2024-01-02", "2024-01-02T09:00" or
    "2024-01-02T09:00:00+06:00" and return it as UTC-naive.

    Blank input means "not given" and returns None. Dates without an offset
    are taken as UTC. Raises ValueError for anything else.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: datetime | None) -> str | None:
    """Whole-second ISO-8601 text ending in Z, as every to_dict() emits it."""
    if dt is None:
        return None
    return to_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"
