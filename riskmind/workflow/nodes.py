"""Graph nodes wrapping each pipeline stage.

Every node catches its own failures and turns them into an audit entry, an
error message and the termination flag, so the graph walk itself never
raises for a stage problem.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from riskmind.connectors.base import AuditSink
from riskmind.execution.stage import Stage, StageResult
from riskmind.models import (
    AuditEntry,
    Decision,
    ReviewResult,
    RiskAssessment,
    ValidatedTick,
    utc_now,
)
from riskmind.risk.engine import RiskRequest
from riskmind.strategy.decision import DecisionRequest
from riskmind.strategy.pnl import PnLCalculator
from riskmind.workflow.state import StateUpdate, WorkflowState

VALIDATE = "validate"
RISK_SCORE = "risk_score"
INTERPRET = "interpret"
DECIDE = "decide"
REVIEW = "review"
RECORD = "record"


@dataclass(frozen=True)
class InterpretRequest:
    tick: ValidatedTick
    risk: RiskAssessment


@dataclass(frozen=True)
class ReviewRequest:
    tick: ValidatedTick
    decision: Decision
    pnl_percent: float = 0.0


def success_update(stage: str, **fields: Any) -> StateUpdate:
    return {
        **fields,
        "audit_trail": (AuditEntry(stage=stage, status="success", timestamp=utc_now()),),
    }


def failure_update(stage: str, error: str) -> StateUpdate:
    return {
        "errors": (error,),
        "should_terminate": True,
        "audit_trail": (
            AuditEntry(stage=stage, status="failure", timestamp=utc_now(), detail=error),
        ),
    }


class WorkflowNodes:
    """Node callables bound to the stages and collaborators of one orchestrator."""

    def __init__(
        self,
        market: Stage[Mapping[str, Any], ValidatedTick],
        risk: Stage[RiskRequest, RiskAssessment],
        interpret: Stage[InterpretRequest, str],
        decide: Stage[DecisionRequest, Decision],
        review: Stage[ReviewRequest, ReviewResult],
        audit: AuditSink | None = None,
    ) -> None:
        self.market = market
        self.risk = risk
        self.interpret_stage = interpret
        self.decide_stage = decide
        self.review_stage = review
        self.audit = audit
        self.pnl = PnLCalculator()
        self._log = structlog.get_logger(__name__)

    async def validate(self, state: WorkflowState) -> StateUpdate:
        return await self._run(VALIDATE, self.market, state.raw_tick, "validated_tick")

    async def risk_score(self, state: WorkflowState) -> StateUpdate:
        if state.should_terminate or state.validated_tick is None:
            return {}
        request = RiskRequest(tick=state.validated_tick, portfolio=state.portfolio)
        return await self._run(RISK_SCORE, self.risk, request, "risk_assessment")

    async def interpret(self, state: WorkflowState) -> StateUpdate:
        if state.should_terminate or state.validated_tick is None or state.risk_assessment is None:
            return {}
        request = InterpretRequest(tick=state.validated_tick, risk=state.risk_assessment)
        return await self._run(INTERPRET, self.interpret_stage, request, "risk_interpretation")

    async def decide(self, state: WorkflowState) -> StateUpdate:
        if state.should_terminate or state.validated_tick is None or state.risk_assessment is None:
            return {}
        request = DecisionRequest(
            tick=state.validated_tick,
            risk=state.risk_assessment,
            position=state.position,
        )
        return await self._run(DECIDE, self.decide_stage, request, "decision")

    async def review(self, state: WorkflowState) -> StateUpdate:
        if state.should_terminate or state.validated_tick is None or state.decision is None:
            return {}
        pnl_percent = 0.0
        if state.position is not None:
            pnl_percent = self.pnl.unrealized(
                state.position.entry_price,
                state.validated_tick.price,
                state.position.quantity,
            ).pnl_percent
        request = ReviewRequest(
            tick=state.validated_tick,
            decision=state.decision,
            pnl_percent=pnl_percent,
        )
        return await self._run(REVIEW, self.review_stage, request, "review")

    async def record(self, state: WorkflowState) -> StateUpdate:
        """Push the trail and final decision to the audit sink; never fails the run."""
        if self.audit is None:
            return success_update(RECORD)
        try:
            for entry in state.audit_trail:
                await self.audit.record(entry.stage, entry.status, entry.detail, entry.timestamp)
            if state.decision is not None and not state.should_terminate:
                risk_score = state.risk_assessment.risk_score if state.risk_assessment else 0.0
                await self.audit.record_decision(
                    state.decision, risk_score, f"workflow-{state.run_id}"
                )
        except Exception as exc:
            # Audit is best effort; the run outcome does not depend on it.
            self._log.error("audit_sink_failed", run_id=state.run_id, error=str(exc))
            return {
                "audit_trail": (
                    AuditEntry(
                        stage=RECORD,
                        status="failure",
                        timestamp=utc_now(),
                        detail=f"audit sink unavailable: {exc}",
                    ),
                ),
            }
        return success_update(RECORD)

    async def _run(self, name: str, stage: Stage, payload: Any, field: str) -> StateUpdate:
        self._log.info("workflow_node_started", node=name)
        try:
            result: StageResult = await stage.execute(payload)
        except Exception as exc:
            self._log.exception("workflow_node_crashed", node=name)
            return failure_update(name, str(exc) or exc.__class__.__name__)
        if not result.success or result.output is None:
            return failure_update(name, result.error or f"{name} failed")
        return success_update(name, **{field: result.output})
