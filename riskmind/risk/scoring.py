"""Composite risk scoring with per-factor weights and reason codes."""

from __future__ import annotations

from typing import Mapping

from riskmind.config.settings import RiskConfig
from riskmind.models import RiskFactors, RiskLevel, RiskReasonCode

CRITICAL_THRESHOLD = 0.8

VAR_WEIGHT = 0.35
VOLATILITY_WEIGHT = 0.25
SENTIMENT_WEIGHT = 0.25
CONCENTRATION_WEIGHT = 0.15

HIGH_VOLATILITY = 0.3
NEGATIVE_SENTIMENT = -0.2
CONCENTRATION_FLAG = 0.4
MARKET_STRESS_INDEX = 30.0


def _clamp(value: float, min_val: float, max_val: float) -> float:
    return max(min_val, min(max_val, value))


def _normalize(value: float, min_val: float, max_val: float) -> float:
    if max_val == min_val:
        return 0.0
    return _clamp((value - min_val) / (max_val - min_val), 0.0, 1.0)


class RiskScorer:
    """Turn risk factors into a composite score, level and reason codes."""

    def __init__(self, config: RiskConfig | None = None) -> None:
        self.config = config or RiskConfig()

    def composite_score(self, factors: RiskFactors) -> float:
        var_norm = _normalize(factors.var95, 0.0, self.config.var_ceiling)
        score = (
            var_norm * VAR_WEIGHT
            + _clamp(factors.volatility, 0.0, 1.0) * VOLATILITY_WEIGHT
            + _clamp(factors.sentiment_risk, 0.0, 1.0) * SENTIMENT_WEIGHT
            + _clamp(factors.concentration_risk, 0.0, 1.0) * CONCENTRATION_WEIGHT
        )
        return _clamp(score, 0.0, 1.0)

    def risk_level(self, score: float) -> RiskLevel:
        if score >= CRITICAL_THRESHOLD:
            return RiskLevel.CRITICAL
        if score >= self.config.high_threshold:
            return RiskLevel.HIGH
        if score >= self.config.medium_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def reason_codes(self, factors: RiskFactors, sentiment: float | None = None) -> tuple[str, ...]:
        codes = []
        if factors.volatility > HIGH_VOLATILITY:
            codes.append(RiskReasonCode.HIGH_VOLATILITY.value)
        if sentiment is not None and sentiment < NEGATIVE_SENTIMENT:
            codes.append(RiskReasonCode.NEGATIVE_SENTIMENT.value)
        if factors.var95 > self.config.high_var_threshold:
            codes.append(RiskReasonCode.HIGH_VAR.value)
        if factors.concentration_risk > CONCENTRATION_FLAG:
            codes.append(RiskReasonCode.CONCENTRATION_RISK.value)
        return tuple(codes)

    @staticmethod
    def sentiment_risk(sentiment: float | None) -> float:
        """Map sentiment -1..1 to risk 1..0; unknown sentiment is neutral (0.5)."""
        if sentiment is None:
            return 0.5
        return _clamp((1 - sentiment) / 2, 0.0, 1.0)

    def concentration_risk(
        self,
        exposures: Mapping[str, float],
        total_value: float,
    ) -> float:
        """Largest single exposure as a share of the portfolio, scaled to 2x threshold."""
        if total_value <= 0 or not exposures:
            return 0.0
        max_share = max(exposures.values()) / total_value
        return _normalize(max_share, 0.0, self.config.concentration_threshold * 2)

    @staticmethod
    def adjust_for_market_conditions(score: float, volatility_index: float | None = None) -> float:
        if not volatility_index or volatility_index <= MARKET_STRESS_INDEX:
            return score
        multiplier = 1 + (volatility_index - MARKET_STRESS_INDEX) / 100
        return _clamp(score * multiplier, 0.0, 1.0)
