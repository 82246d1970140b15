"""Shared timestamp parsing and formatting helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def _format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp into an aware UTC datetime, or None."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        try:
            dt = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if not dt.tzinfo:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_to_epoch(value: Any) -> float:
    parsed = parse_timestamp(value)
    if not parsed:
        return 0.0
    return parsed.timestamp()


def utc_now_iso() -> str:
    return _format_datetime_utc(datetime.now(timezone.utc))


def earliest(values: list[str]) -> str:
    """Return the input string with the earliest instant (ties keep the first)."""
    best = ""
    best_epoch = float("inf")
    for value in values:
        if not value:
            continue
        epoch = iso_to_epoch(value)
        if epoch < best_epoch:
            best = value
            best_epoch = epoch
    return best


def latest(values: list[str]) -> str:
    """Return the input string with the latest instant (ties keep the first)."""
    best = ""
    best_epoch = float("-inf")
    for value in values:
        if not value:
            continue
        epoch = iso_to_epoch(value)
        if epoch > best_epoch:
            best = value
            best_epoch = epoch
    return best
