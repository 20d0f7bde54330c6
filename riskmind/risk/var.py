"""Value-at-Risk estimators.

The live pipeline scores a single tick with ``single_tick_var``; the
historical, parametric and expected-shortfall estimators need a return series
and are invoked explicitly by callers that have one.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

DEFAULT_PORTFOLIO_VALUE = 1_000_000.0
DEFAULT_Z_SCORE = 1.645

Z_SCORES = {
    0.90: 1.282,
    0.95: 1.645,
    0.99: 2.326,
}


def z_score(confidence: float) -> float:
    return Z_SCORES.get(round(confidence, 4), DEFAULT_Z_SCORE)


def _tail_index(n: int, confidence: float) -> int:
    return max(0, int(math.floor(n * (1 - confidence))))


def historical_var(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = DEFAULT_PORTFOLIO_VALUE,
) -> float:
    """Absolute loss at the ``1 - confidence`` percentile of sorted returns."""
    values = np.sort(np.asarray(returns, dtype=float))
    if values.size == 0:
        return 0.0
    index = min(_tail_index(values.size, confidence), values.size - 1)
    return abs(float(values[index]) * portfolio_value)


def parametric_var(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = DEFAULT_PORTFOLIO_VALUE,
) -> float:
    """Normal-distribution VaR: ``|mean - z * sigma| * value``."""
    values = np.asarray(returns, dtype=float)
    if values.size == 0:
        return 0.0
    mean = float(values.mean())
    sigma = float(values.std(ddof=0))
    return abs((mean - z_score(confidence) * sigma) * portfolio_value)


def expected_shortfall(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = DEFAULT_PORTFOLIO_VALUE,
) -> float:
    """Mean of the returns below the VaR cutoff, as an absolute loss."""
    values = np.sort(np.asarray(returns, dtype=float))
    if values.size == 0:
        return 0.0
    tail = values[: _tail_index(values.size, confidence)]
    if tail.size == 0:
        return 0.0
    return abs(float(tail.mean()) * portfolio_value)


def single_tick_var(price: float, annual_volatility: float) -> float:
    """One-day 95% VaR from a price and annualized volatility."""
    return price * (annual_volatility / math.sqrt(252)) * DEFAULT_Z_SCORE


def synthetic_returns(
    mean: float,
    std_dev: float,
    count: int = 1000,
    seed: int | None = None,
) -> np.ndarray:
    """Normally distributed returns for Monte Carlo runs."""
    rng = np.random.default_rng(seed)
    return rng.normal(loc=mean, scale=std_dev, size=count)
