"""
Shared utility functions for parsing and data coercion

Provides common helpers for:
- String parsing: Environment variable conversion (parse_bool, parse_int, split_csv)
- Optional values: Trimming blank strings to None
- Data coercion: Safe list/str conversion for loosely typed LLM payloads

These utilities are used throughout Herald for configuration parsing and for
reading the `details` mapping returned by the intent parser.
"""

from __future__ import annotations

from typing import Any


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret env-style booleans."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_int(value: str | None, default: int) -> int:
    """Best-effort int parser with fallback."""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def split_csv(value: str | None) -> list[str]:
    """Split comma-separated strings into trimmed tokens."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def coerce_str(value: Any) -> str | None:
    """Return a stripped string for scalar values, None for blanks and containers."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    text = str(value).strip()
    return text or None


def coerce_str_list(value: Any) -> list[str]:
    """Accept a list or a comma-separated string and return non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return split_csv(value)
    if isinstance(value, (list, tuple)):
        items: list[str] = []
        for item in value:
            text = coerce_str(item)
            if text:
                items.append(text)
        return items
    return []


def coerce_int(value: Any, default: int | None = None) -> int | None:
    """Best-effort int conversion for numbers that arrive as strings or floats."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
