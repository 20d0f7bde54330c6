"""Decision engine turning tick, risk and position into a recommendation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import structlog

from riskmind.config.settings import DecisionConfig, RiskConfig
from riskmind.connectors.base import NarrativeGenerator
from riskmind.errors import ValidationError
from riskmind.models import ActionType, AlternativeStock, Decision, Position, RiskAssessment, ValidatedTick
from riskmind.strategy.alternatives import AlternativeFinder
from riskmind.strategy.narrative import NarrativeContext, fallback_rationale
from riskmind.strategy.pnl import PnLCalculator
from riskmind.strategy.rules import RuleContext, RuleResult, evaluate_rules

if TYPE_CHECKING:
    from riskmind.execution.stage import Stage

ALTERNATIVE_ACTIONS = frozenset({ActionType.EXIT, ActionType.REALLOCATE})


@dataclass(frozen=True)
class DecisionRequest:
    tick: ValidatedTick
    risk: RiskAssessment
    position: Position | None = None


class DecisionEngine:
    """Rule table first, prose second.

    Action and urgency come only from ``evaluate_rules``. For urgent
    decisions the narrative generator is asked for a rationale; if it fails
    or times out the templated fallback is used instead.
    """

    def __init__(
        self,
        config: DecisionConfig | None = None,
        risk_config: RiskConfig | None = None,
        narrative: NarrativeGenerator | None = None,
        alternatives: AlternativeFinder | None = None,
        narrative_timeout_sec: float | None = None,
    ) -> None:
        self.config = config or DecisionConfig()
        self.narrative_timeout_sec = narrative_timeout_sec or self.config.narrative_timeout_sec
        self.risk_config = risk_config or RiskConfig()
        self.narrative = narrative
        self.alternatives = alternatives or AlternativeFinder(None, self.config.alternatives_limit)
        self.pnl = PnLCalculator()
        self._log = structlog.get_logger(__name__)

    def validate(self, request: DecisionRequest) -> None:
        if request is None or request.tick is None or request.risk is None:
            raise ValidationError("Invalid decision input")

    async def process(self, request: DecisionRequest) -> Decision:
        tick, risk, position = request.tick, request.risk, request.position
        self._log.info("decision_started", symbol=tick.symbol)

        pnl = pnl_percent = exposure = 0.0
        if position is not None:
            result = self.pnl.unrealized(position.entry_price, tick.price, position.quantity)
            pnl, pnl_percent = result.pnl, result.pnl_percent
            exposure = self.pnl.exposure(tick.price, position.quantity)

        volatility = self._volatility(tick)
        rule = self.evaluate(tick, risk, pnl_percent)

        rationale, source = rule.reason, "rules"
        if rule.urgency >= self.config.narrative_urgency_threshold:
            context = NarrativeContext(
                symbol=tick.symbol,
                current_price=tick.price,
                entry_price=position.entry_price if position else tick.price,
                change_percent=tick.change_percent,
                pnl_percent=pnl_percent,
                pnl_amount=pnl,
                quantity=position.quantity if position else 0.0,
                exposure=exposure,
                risk_score=risk.risk_score,
                risk_level=risk.risk_level.value,
                volatility=volatility,
                var95=risk.factors.var95,
                action=rule.action,
                urgency=rule.urgency,
                sentiment=tick.sentiment,
                sector=tick.sector,
            )
            rationale, source = await self._rationale(context)

        alternatives: tuple[AlternativeStock, ...] | None = None
        if rule.action in ALTERNATIVE_ACTIONS:
            alternatives = tuple(
                self.alternatives.find_alternatives(
                    tick.symbol, limit=self.config.alternatives_limit
                )
            )

        decision = Decision(
            symbol=tick.symbol,
            action=rule.action,
            rationale=rationale,
            urgency=rule.urgency,
            risk_score=risk.risk_score,
            expected_pnl=pnl if position is not None else None,
            alternatives=alternatives,
            rationale_source=source,
        )
        self._log.info(
            "decision_made",
            symbol=tick.symbol,
            action=decision.action.value,
            urgency=decision.urgency,
            rationale_source=source,
        )
        return decision

    def evaluate(self, tick: ValidatedTick, risk: RiskAssessment, pnl_percent: float = 0.0) -> RuleResult:
        """Rule outcome only, without prose or alternatives."""
        return evaluate_rules(
            RuleContext(
                symbol=tick.symbol,
                risk_score=risk.risk_score,
                risk_level=risk.risk_level.value,
                pnl_percent=pnl_percent,
                volatility=self._volatility(tick),
                concentration_risk=risk.factors.concentration_risk,
                sentiment=tick.sentiment,
            )
        )

    async def process_portfolio(
        self,
        requests: Sequence[DecisionRequest],
        stage: Stage[DecisionRequest, Decision],
    ) -> list[Decision]:
        """Run each request through ``stage``; successful decisions, most urgent first."""
        decisions = []
        for request in requests:
            result = await stage.execute(request)
            if result.success and result.output is not None:
                decisions.append(result.output)
        decisions.sort(key=lambda d: d.urgency, reverse=True)
        return decisions

    def _volatility(self, tick: ValidatedTick) -> float:
        if tick.volatility_30d is not None:
            return tick.volatility_30d
        return self.risk_config.default_volatility

    async def _rationale(self, context: NarrativeContext) -> tuple[str, str]:
        if self.narrative is None:
            return fallback_rationale(context), "fallback"
        try:
            text = await asyncio.wait_for(
                self.narrative.generate(context),
                timeout=self.narrative_timeout_sec,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._log.warning(
                "narrative_fallback",
                symbol=context.symbol,
                error=str(exc) or exc.__class__.__name__,
            )
            return fallback_rationale(context), "fallback"
        if not text:
            return fallback_rationale(context), "fallback"
        return text, "llm"
