from __future__ import annotations

import asyncio
import math
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from riskmind.config.settings import RiskConfig
from riskmind.errors import ValidationError
from riskmind.models import DerivedMetrics, PortfolioSnapshot, RiskLevel, ValidatedTick
from riskmind.risk.engine import RiskEngine, RiskRequest


def _validated(**overrides) -> ValidatedTick:
    base = ValidatedTick(
        symbol="XYZ.NS",
        price=100.0,
        open=98.0,
        high=101.0,
        low=97.0,
        close=100.0,
        volume=10_000.0,
        change=2.0,
        change_percent=2.04,
        timestamp=datetime(2026, 1, 5, tzinfo=timezone.utc),
        sentiment=-0.5,
        volatility_30d=0.5,
        sector="IT",
        derived=DerivedMetrics(price_momentum=2.04),
    )
    return replace(base, **overrides)


def test_single_tick_assessment_without_portfolio() -> None:
    engine = RiskEngine(RiskConfig())
    risk = engine.assess(_validated())

    var95 = 100 * 0.5 / math.sqrt(252) * 1.645
    assert risk.factors.var95 == pytest.approx(var95)
    assert risk.factors.sentiment_risk == pytest.approx(0.75)
    assert risk.factors.concentration_risk == 0.0
    expected = 0.35 * (var95 / 500_000) + 0.25 * 0.5 + 0.25 * 0.75
    assert risk.risk_score == pytest.approx(expected)
    assert risk.risk_level == RiskLevel.LOW
    assert risk.reason_codes == ("high_volatility", "negative_sentiment")


def test_missing_volatility_uses_default() -> None:
    engine = RiskEngine(RiskConfig(default_volatility=0.2))
    risk = engine.assess(_validated(volatility_30d=None, sentiment=None))
    assert risk.factors.volatility == 0.2
    assert risk.factors.sentiment_risk == 0.5
    assert risk.reason_codes == ()


def test_concentrated_portfolio_with_tight_var_ceiling_is_critical() -> None:
    engine = RiskEngine(RiskConfig(var_ceiling=5.0))
    portfolio = PortfolioSnapshot(exposures={"XYZ.NS": 100_000.0, "ABC.NS": 10_000.0})
    risk = engine.assess(_validated(), portfolio)

    assert risk.factors.concentration_risk == 1.0
    assert risk.risk_score == pytest.approx(0.35 + 0.125 + 0.1875 + 0.15)
    assert risk.risk_level == RiskLevel.CRITICAL
    assert "concentration_risk" in risk.reason_codes


def test_score_always_within_unit_interval() -> None:
    engine = RiskEngine(RiskConfig(var_ceiling=1.0))
    for sentiment in (-1.0, 0.0, 1.0):
        for vol in (0.0, 0.5, 3.0):
            risk = engine.assess(_validated(sentiment=sentiment, volatility_30d=vol))
            assert 0.0 <= risk.risk_score <= 1.0


def test_validate_requires_market_stage_output() -> None:
    engine = RiskEngine()
    with pytest.raises(ValidationError):
        engine.validate(RiskRequest(tick=_validated(normalized=False)))
    with pytest.raises(ValidationError):
        engine.validate(RiskRequest(tick=None))


def test_process_is_the_stage_entry_point() -> None:
    engine = RiskEngine()
    risk = asyncio.run(engine.process(RiskRequest(tick=_validated())))
    assert risk.symbol == "XYZ.NS"


def test_portfolio_level_risk_is_exposure_weighted() -> None:
    engine = RiskEngine()
    calm = _validated(symbol="AAA.NS", sentiment=0.8, volatility_30d=0.1, sector="FMCG")
    wild = _validated(symbol="BBB.NS", sentiment=-0.8, volatility_30d=0.9, sector="IT")
    result = engine.assess_portfolio([calm, wild], {"AAA.NS": 30, "BBB.NS": 10})

    calm_score = engine.assess(calm).risk_score
    wild_score = engine.assess(wild).risk_score
    assert result.exposure_by_symbol == {"AAA.NS": 3000.0, "BBB.NS": 1000.0}
    assert result.exposure_by_sector == {"FMCG": 3000.0, "IT": 1000.0}
    assert result.overall_risk == pytest.approx((calm_score * 3000 + wild_score * 1000) / 4000)
    assert result.concentration_risk == pytest.approx(0.75 / 0.8)
