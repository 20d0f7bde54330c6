"""Decision engine: rule table, P&L, alternatives and rationale prose."""

from riskmind.strategy.alternatives import AlternativeFinder
from riskmind.strategy.decision import DecisionEngine, DecisionRequest
from riskmind.strategy.narrative import LLMNarrativeGenerator, NarrativeContext, fallback_rationale
from riskmind.strategy.pnl import PnL, PnLCalculator
from riskmind.strategy.rules import RuleContext, RuleResult, action_priority, evaluate_rules

__all__ = [
    "AlternativeFinder",
    "DecisionEngine",
    "DecisionRequest",
    "LLMNarrativeGenerator",
    "NarrativeContext",
    "PnL",
    "PnLCalculator",
    "RuleContext",
    "RuleResult",
    "action_priority",
    "evaluate_rules",
    "fallback_rationale",
]
