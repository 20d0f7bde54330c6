"""Volatility estimators over historical price arrays."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np
import pandas as pd

TRADING_DAYS = 252

ReturnKind = Literal["simple", "log"]


def calculate_returns(prices: Sequence[float] | pd.Series, kind: ReturnKind = "simple") -> pd.Series:
    """Daily returns; steps whose previous price is zero are skipped."""
    series = pd.Series(prices, dtype=float).reset_index(drop=True)
    if len(series) < 2:
        return pd.Series(dtype=float)
    prev = series.shift(1)
    valid = prev.iloc[1:] != 0
    current = series.iloc[1:][valid]
    previous = prev.iloc[1:][valid]
    if kind == "log":
        returns = np.log(current / previous)
    else:
        returns = (current - previous) / previous
    return returns.reset_index(drop=True)


def _population_std(values: pd.Series) -> float:
    if values.empty:
        return 0.0
    return float(values.std(ddof=0))


def historical_volatility(
    prices: Sequence[float] | pd.Series,
    window_days: int = 30,
    kind: ReturnKind = "simple",
) -> float:
    """Annualized std of the trailing ``window_days`` returns."""
    returns = calculate_returns(prices, kind)
    if returns.empty:
        return 0.0
    recent = returns.iloc[-window_days:]
    return _population_std(recent) * math.sqrt(TRADING_DAYS)


def ewma_volatility(prices: Sequence[float] | pd.Series, lam: float = 0.94) -> float:
    """RiskMetrics-style EWMA of squared returns, seeded with the first value."""
    returns = calculate_returns(prices)
    if returns.empty:
        return 0.0
    squared = returns**2
    # v = lam * v + (1 - lam) * r2, i.e. alpha = 1 - lam without bias adjustment.
    variance = float(squared.ewm(alpha=1 - lam, adjust=False).mean().iloc[-1])
    return math.sqrt(variance) * math.sqrt(TRADING_DAYS)


def parkinson_volatility(highs: Sequence[float], lows: Sequence[float]) -> float:
    """High/low range estimator: ``sqrt(sum ln(H/L)^2 / (4 n ln 2)) * sqrt(252)``."""
    if len(highs) == 0 or len(highs) != len(lows):
        return 0.0
    high = np.asarray(highs, dtype=float)
    low = np.asarray(lows, dtype=float)
    mask = low != 0
    if not mask.any():
        return 0.0
    log_ranges = np.log(high[mask] / low[mask]) ** 2
    n = len(high)
    return math.sqrt(float(log_ranges.sum()) / (4 * n * math.log(2))) * math.sqrt(TRADING_DAYS)


def realized_volatility(returns: Sequence[float] | pd.Series) -> float:
    """``sqrt(sum r^2 * 252)``."""
    values = np.asarray(returns, dtype=float)
    if values.size == 0:
        return 0.0
    return math.sqrt(float((values**2).sum()) * TRADING_DAYS)


def normalize_volatility(volatility: float) -> float:
    return max(0.0, min(1.0, volatility))


@dataclass(frozen=True)
class VolatilityClustering:
    is_clustered: bool
    short_term_vol: float
    long_term_vol: float
    ratio: float


def detect_volatility_clustering(
    prices: Sequence[float] | pd.Series,
    short_window: int = 10,
    long_window: int = 60,
    threshold: float = 1.5,
) -> VolatilityClustering:
    """Flag regimes where short-term volatility exceeds long-term by ``threshold``x."""
    if len(prices) < long_window:
        return VolatilityClustering(False, 0.0, 0.0, 1.0)
    short = historical_volatility(prices, short_window)
    long = historical_volatility(prices, long_window)
    ratio = short / long if long > 0 else 1.0
    return VolatilityClustering(
        is_clustered=ratio > threshold,
        short_term_vol=short,
        long_term_vol=long,
        ratio=ratio,
    )
