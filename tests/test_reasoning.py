from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from riskmind.connectors.reasoning import ReasoningService
from riskmind.models import (
    ActionType,
    Decision,
    DerivedMetrics,
    RiskAssessment,
    RiskFactors,
    RiskLevel,
    ValidatedTick,
)

TS = datetime(2024, 1, 15, tzinfo=timezone.utc)


class FakeGenerator:
    def __init__(self, response: str | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.prompts: list[tuple[str, str | None]] = []

    async def complete(self, prompt: str, system: str | None = None) -> str:
        self.prompts.append((prompt, system))
        if self.error is not None:
            raise self.error
        return self.response or ""


def _tick() -> ValidatedTick:
    return ValidatedTick(
        symbol="XYZ.NS",
        price=100.0,
        open=98.0,
        high=101.0,
        low=97.0,
        close=100.0,
        volume=50_000,
        change=2.0,
        change_percent=2.04,
        timestamp=TS,
        sentiment=-0.5,
        volatility_30d=0.5,
        normalized=True,
        enriched=True,
        derived=DerivedMetrics(price_momentum=2.04),
    )


def _risk() -> RiskAssessment:
    return RiskAssessment(
        symbol="XYZ.NS",
        risk_score=0.82,
        risk_level=RiskLevel.CRITICAL,
        factors=RiskFactors(var95=5.18, volatility=0.5, sentiment_risk=0.75, concentration_risk=1.0),
        reason_codes=("high_volatility",),
        timestamp=TS,
    )


def _decision() -> Decision:
    return Decision(
        symbol="XYZ.NS",
        action=ActionType.EXIT,
        rationale="Critical risk level with strong negative sentiment",
        urgency=10,
        risk_score=0.82,
    )


def test_interpretation_without_generator_is_numeric_summary() -> None:
    text = asyncio.run(ReasoningService().interpret_risk(_tick(), _risk()))
    assert text == "Risk Level: critical (82%). Volatility: 50.0%."


def test_interpretation_uses_generator_and_falls_back_on_error() -> None:
    generator = FakeGenerator(response="  Volatility dominates the risk.  ")
    service = ReasoningService(generator)
    assert asyncio.run(service.interpret_risk(_tick(), _risk())) == "Volatility dominates the risk."
    prompt, system = generator.prompts[0]
    assert "XYZ.NS" in prompt
    assert "ONE sentence" in prompt
    assert "risk analyst" in system

    detailed = asyncio.run(service.interpret_risk(_tick(), _risk(), detailed=True))
    assert detailed == "Volatility dominates the risk."
    assert "Risk Level: critical" in generator.prompts[1][0]

    failing = ReasoningService(FakeGenerator(error=RuntimeError("rate limited")))
    assert asyncio.run(failing.interpret_risk(_tick(), _risk())).startswith("Risk Level: critical")


def test_review_parses_json_payload() -> None:
    generator = FakeGenerator(
        response='Here you go: {"confidence": 0.92, "concerns": "None", '
        '"verdict": "review_needed", "reasoning": "Exit is justified."}'
    )
    result = asyncio.run(ReasoningService(generator).review_decision(_tick(), _decision(), -12.5))
    assert result.confidence == 0.92
    assert result.verdict == "REVIEW_NEEDED"
    assert result.reasoning == "Exit is justified."
    assert "P&L: -12.50%" in generator.prompts[0][0]


def test_review_clamps_confidence_and_unknown_verdict() -> None:
    generator = FakeGenerator(response='{"confidence": 3, "verdict": "MAYBE"}')
    result = asyncio.run(ReasoningService(generator).review_decision(_tick(), _decision()))
    assert result.confidence == 1.0
    assert result.verdict == "APPROVE"
    assert result.concerns == "None"


def test_review_from_free_text() -> None:
    generator = FakeGenerator(response="I am confident but a human review is advisable.")
    result = asyncio.run(ReasoningService(generator).review_decision(_tick(), _decision()))
    assert result.confidence == 0.8
    assert result.verdict == "REVIEW_NEEDED"


def test_review_fallback_without_backend() -> None:
    for service in (ReasoningService(), ReasoningService(FakeGenerator(error=OSError("down")))):
        result = asyncio.run(service.review_decision(_tick(), _decision()))
        assert result.confidence == 0.5
        assert result.verdict == "APPROVE"
        assert result.concerns == "LLM validation unavailable"
