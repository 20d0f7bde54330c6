"""Validation rules for market ticks."""

from __future__ import annotations

import re

from riskmind.errors import ValidationError
from riskmind.models import Tick

# 1-20 alphanumerics (plus '&', as in M&M), optional exchange suffix.
SYMBOL_PATTERN = re.compile(r"^[A-Z0-9&]{1,20}(\.NS|\.BO)?$")


def validate_symbol(symbol: str) -> bool:
    return bool(SYMBOL_PATTERN.match(symbol))


def validate_price_relationships(tick: Tick) -> bool:
    """``low <= {open, close, price} <= high``."""
    if tick.high < tick.low or tick.high < tick.open or tick.high < tick.close:
        return False
    if tick.low > tick.open or tick.low > tick.close:
        return False
    if tick.price < tick.low or tick.price > tick.high:
        return False
    return True


def check_ranges(tick: Tick) -> None:
    """Reject values outside their domain; nothing is clamped or corrected."""
    for name in ("price", "open", "high", "low", "close"):
        if getattr(tick, name) <= 0:
            raise ValidationError(f"{name} must be positive for {tick.symbol}")
    if tick.volume < 0:
        raise ValidationError(f"volume must be non-negative for {tick.symbol}")
    if tick.sentiment is not None and not -1.0 <= tick.sentiment <= 1.0:
        raise ValidationError(f"sentiment out of range [-1, 1] for {tick.symbol}")
    if tick.volatility_30d is not None and tick.volatility_30d < 0:
        raise ValidationError(f"volatility30d must be non-negative for {tick.symbol}")
