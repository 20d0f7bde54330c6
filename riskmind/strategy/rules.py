"""Ordered decision table mapping risk context to an action."""

from __future__ import annotations

from dataclasses import dataclass

from riskmind.models import ActionType


@dataclass(frozen=True)
class RuleContext:
    symbol: str
    risk_score: float
    risk_level: str
    pnl_percent: float
    volatility: float
    concentration_risk: float
    sentiment: float | None = None


@dataclass(frozen=True)
class RuleResult:
    action: ActionType
    urgency: int
    reason: str


ACTION_PRIORITY = {
    ActionType.EXIT: 5,
    ActionType.STOP_LOSS: 4,
    ActionType.REDUCE: 3,
    ActionType.REALLOCATE: 2,
    ActionType.HOLD: 1,
    ActionType.BUY: 0,
}


def action_priority(action: ActionType) -> int:
    return ACTION_PRIORITY.get(action, 0)


def evaluate_rules(ctx: RuleContext) -> RuleResult:
    """First matching rule wins; missing sentiment counts as neutral (0)."""
    sentiment = ctx.sentiment if ctx.sentiment is not None else 0.0

    if ctx.risk_score > 0.8 and sentiment < -0.3:
        return RuleResult(
            ActionType.EXIT, 10, "Critical risk level with strong negative sentiment"
        )
    if ctx.pnl_percent < -15:
        return RuleResult(
            ActionType.STOP_LOSS, 9, "Stop-loss triggered at -15% loss threshold"
        )
    if ctx.risk_score > 0.7 and sentiment < -0.2:
        return RuleResult(
            ActionType.EXIT, 8, "High risk combined with negative market sentiment"
        )
    if ctx.concentration_risk > 0.4:
        return RuleResult(
            ActionType.REALLOCATE, 7, "Portfolio over-concentrated in this position"
        )
    if ctx.risk_score > 0.5 and ctx.volatility > 0.35:
        return RuleResult(
            ActionType.REDUCE, 6, "Elevated risk and volatility suggest position reduction"
        )
    if ctx.risk_score > 0.5:
        return RuleResult(
            ActionType.REDUCE, 5, "Moderate risk level warrants partial position reduction"
        )
    if ctx.pnl_percent < -10:
        return RuleResult(ActionType.REDUCE, 5, "Loss exceeds 10% threshold")
    if ctx.risk_score < 0.4 and sentiment > 0.3:
        return RuleResult(
            ActionType.HOLD, 2, "Low risk with positive sentiment supports holding"
        )
    return RuleResult(ActionType.HOLD, 3, "Risk metrics within acceptable range")
