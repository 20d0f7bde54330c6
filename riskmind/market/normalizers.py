"""Normalization helpers for raw tick payloads."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping

from riskmind.errors import ValidationError
from riskmind.models import utc_now

EXCHANGE_SUFFIXES = (".NS", ".BO")
DEFAULT_SUFFIX = ".NS"

_MISSING = object()


def normalize_symbol(symbol: str) -> str:
    """Upper-case and trim; add the NSE suffix unless an exchange suffix is present."""
    if not symbol:
        return ""
    upper = symbol.upper().strip()
    if upper.endswith(EXCHANGE_SUFFIXES):
        return upper
    return f"{upper}{DEFAULT_SUFFIX}"


def strip_suffix(symbol: str) -> str:
    upper = symbol.upper().strip()
    for suffix in EXCHANGE_SUFFIXES:
        if upper.endswith(suffix):
            return upper[: -len(suffix)]
    return upper


def normalize_timestamp(value: Any) -> datetime:
    """Accept datetimes, ISO strings or epoch seconds/milliseconds; default to now."""
    if value is None or value == "":
        return utc_now()
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e12 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp: {value}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValidationError(f"Invalid timestamp: {value!r}")


def parse_number(value: Any, default: float | None = None, field: str = "value") -> float:
    """Parse a numeric field, falling back to ``default`` only when one is given."""
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"Required numeric value is missing: {field}")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid numeric value for {field}: {value}")
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        parsed = math.nan
    if math.isnan(parsed) or math.isinf(parsed):
        if default is not None:
            return default
        raise ValidationError(f"Invalid numeric value for {field}: {value}")
    return parsed


def pick(payload: Mapping[str, Any], *keys: str) -> Any:
    """First present, non-empty value among camelCase/snake_case aliases."""
    for key in keys:
        value = payload.get(key, _MISSING)
        if value is not _MISSING and value is not None and value != "":
            return value
    return None
