"""Immutable workflow state and per-field reducers.

Nodes never touch the state they receive. Each returns a partial update (a
mapping of field name to value) and ``merge_state`` folds it into a new
``WorkflowState`` using the reducer registered for every field: scalar
fields keep the newest non-None value, the audit trail and error list
concatenate.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Mapping

from riskmind.models import (
    AuditEntry,
    Decision,
    PortfolioSnapshot,
    Position,
    ReviewResult,
    RiskAssessment,
    ValidatedTick,
)

StateUpdate = dict[str, Any]
Reducer = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class WorkflowState:
    run_id: str
    user_id: str
    raw_tick: Mapping[str, Any]
    position: Position | None = None
    portfolio: PortfolioSnapshot | None = None
    validated_tick: ValidatedTick | None = None
    risk_assessment: RiskAssessment | None = None
    risk_interpretation: str | None = None
    decision: Decision | None = None
    review: ReviewResult | None = None
    audit_trail: tuple[AuditEntry, ...] = ()
    errors: tuple[str, ...] = ()
    should_terminate: bool = False
    circuit_open: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.errors and not self.should_terminate

    @property
    def symbol(self) -> str:
        if self.validated_tick is not None:
            return self.validated_tick.symbol
        return str(self.raw_tick.get("symbol") or "UNKNOWN")

    def to_dict(self) -> dict[str, Any]:
        tick = self.validated_tick
        risk = self.risk_assessment
        decision = self.decision
        return {
            "run_id": self.run_id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "success": self.succeeded,
            "circuit_open": self.circuit_open,
            "validated_tick": _tick_dict(tick) if tick else None,
            "risk_assessment": _risk_dict(risk) if risk else None,
            "risk_interpretation": self.risk_interpretation,
            "decision": _decision_dict(decision) if decision else None,
            "review": (
                {
                    "confidence": self.review.confidence,
                    "concerns": self.review.concerns,
                    "verdict": self.review.verdict,
                    "reasoning": self.review.reasoning,
                }
                if self.review
                else None
            ),
            "audit_trail": [entry.to_dict() for entry in self.audit_trail],
            "errors": list(self.errors),
            "should_terminate": self.should_terminate,
        }


def keep_latest(current: Any, update: Any) -> Any:
    return update if update is not None else current


def concat(current: tuple, update: Any) -> tuple:
    if not update:
        return current
    return current + tuple(update)


REDUCERS: dict[str, Reducer] = {
    f.name: keep_latest for f in fields(WorkflowState)
}
REDUCERS["audit_trail"] = concat
REDUCERS["errors"] = concat


def merge_state(state: WorkflowState, update: StateUpdate | None) -> WorkflowState:
    """Fold a node's partial update into a new state."""
    if not update:
        return state
    unknown = set(update) - set(REDUCERS)
    if unknown:
        raise KeyError(f"Unknown workflow state fields: {sorted(unknown)}")
    changes = {
        name: REDUCERS[name](getattr(state, name), value) for name, value in update.items()
    }
    return replace(state, **changes)


def _tick_dict(tick: ValidatedTick) -> dict[str, Any]:
    return {
        "symbol": tick.symbol,
        "price": tick.price,
        "open": tick.open,
        "high": tick.high,
        "low": tick.low,
        "close": tick.close,
        "volume": tick.volume,
        "change": tick.change,
        "change_percent": tick.change_percent,
        "timestamp": tick.timestamp.isoformat(),
        "sentiment": tick.sentiment,
        "volatility_30d": tick.volatility_30d,
        "sector": tick.sector,
        "market_cap": tick.market_cap,
        "pe_ratio": tick.pe_ratio,
        "price_momentum": tick.derived.price_momentum,
    }


def _risk_dict(risk: RiskAssessment) -> dict[str, Any]:
    return {
        "symbol": risk.symbol,
        "risk_score": risk.risk_score,
        "risk_level": risk.risk_level.value,
        "factors": {
            "var95": risk.factors.var95,
            "volatility": risk.factors.volatility,
            "sentiment_risk": risk.factors.sentiment_risk,
            "concentration_risk": risk.factors.concentration_risk,
        },
        "reason_codes": list(risk.reason_codes),
        "timestamp": risk.timestamp.isoformat(),
    }


def _decision_dict(decision: Decision) -> dict[str, Any]:
    return {
        "symbol": decision.symbol,
        "action": decision.action.value,
        "rationale": decision.rationale,
        "rationale_source": decision.rationale_source,
        "urgency": decision.urgency,
        "risk_score": decision.risk_score,
        "expected_pnl": decision.expected_pnl,
        "alternatives": (
            [
                {
                    "symbol": alt.symbol,
                    "reason": alt.reason,
                    "risk_score": alt.risk_score,
                    "sentiment": alt.sentiment,
                    "score": alt.score,
                    "sector": alt.sector,
                    "price": alt.price,
                }
                for alt in decision.alternatives
            ]
            if decision.alternatives is not None
            else None
        ),
    }
