from __future__ import annotations

from dataclasses import replace

import pytest

from riskmind.models import ActionType
from riskmind.strategy.rules import RuleContext, action_priority, evaluate_rules


def _ctx(**overrides) -> RuleContext:
    base = RuleContext(
        symbol="XYZ.NS",
        risk_score=0.3,
        risk_level="low",
        pnl_percent=0.0,
        volatility=0.2,
        concentration_risk=0.0,
        sentiment=0.0,
    )
    return replace(base, **overrides)


@pytest.mark.parametrize(
    ("overrides", "action", "urgency"),
    [
        ({"risk_score": 0.85, "sentiment": -0.4}, ActionType.EXIT, 10),
        ({"pnl_percent": -16.0}, ActionType.STOP_LOSS, 9),
        ({"risk_score": 0.75, "sentiment": -0.25}, ActionType.EXIT, 8),
        ({"concentration_risk": 0.45}, ActionType.REALLOCATE, 7),
        ({"risk_score": 0.55, "volatility": 0.4}, ActionType.REDUCE, 6),
        ({"risk_score": 0.55}, ActionType.REDUCE, 5),
        ({"pnl_percent": -12.0}, ActionType.REDUCE, 5),
        ({"risk_score": 0.3, "sentiment": 0.5}, ActionType.HOLD, 2),
        ({}, ActionType.HOLD, 3),
    ],
)
def test_each_rule_in_the_table(overrides: dict, action: ActionType, urgency: int) -> None:
    result = evaluate_rules(_ctx(**overrides))
    assert result.action == action
    assert result.urgency == urgency
    assert result.reason


def test_first_match_wins_over_later_rules() -> None:
    ctx = _ctx(risk_score=0.9, sentiment=-0.5, pnl_percent=-20.0, concentration_risk=0.9)
    result = evaluate_rules(ctx)
    assert (result.action, result.urgency) == (ActionType.EXIT, 10)

    ctx = _ctx(risk_score=0.75, sentiment=-0.5, pnl_percent=-20.0)
    assert evaluate_rules(ctx).action == ActionType.STOP_LOSS


def test_identical_context_yields_identical_result() -> None:
    ctx = _ctx(risk_score=0.6, volatility=0.5)
    assert evaluate_rules(ctx) == evaluate_rules(ctx)


def test_missing_sentiment_is_neutral() -> None:
    result = evaluate_rules(_ctx(risk_score=0.9, sentiment=None))
    assert (result.action, result.urgency) == (ActionType.REDUCE, 5)


def test_boundaries_are_strict() -> None:
    assert evaluate_rules(_ctx(risk_score=0.8, sentiment=-0.31)).urgency == 8
    assert evaluate_rules(_ctx(pnl_percent=-15.0)).action == ActionType.REDUCE
    assert evaluate_rules(_ctx(concentration_risk=0.4)).action == ActionType.HOLD


def test_action_priority_orders_exit_first() -> None:
    actions = [ActionType.HOLD, ActionType.BUY, ActionType.EXIT, ActionType.REDUCE]
    ordered = sorted(actions, key=action_priority, reverse=True)
    assert ordered == [ActionType.EXIT, ActionType.REDUCE, ActionType.HOLD, ActionType.BUY]
