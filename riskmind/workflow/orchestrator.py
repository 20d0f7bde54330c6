"""Workflow orchestrator: circuit breaker gate plus the stage graph."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal, Mapping
from uuid import uuid4

import structlog

from riskmind.config.settings import Settings
from riskmind.connectors.base import AuditSink, NarrativeGenerator, ReferenceDataSource, UniverseSource
from riskmind.connectors.reasoning import ReasoningService
from riskmind.execution.circuit_breaker import CircuitBreaker, CircuitBreakerState
from riskmind.execution.stage import Stage, StageConfig, StageHealth, StageMetrics
from riskmind.market.validator import MarketValidator
from riskmind.models import PortfolioSnapshot, Position
from riskmind.monitoring.metrics import Metrics
from riskmind.risk.engine import RiskEngine
from riskmind.strategy.alternatives import AlternativeFinder
from riskmind.strategy.decision import DecisionEngine
from riskmind.workflow.graph import END, CompiledGraph, StateGraph
from riskmind.workflow.nodes import (
    DECIDE,
    INTERPRET,
    RECORD,
    REVIEW,
    RISK_SCORE,
    VALIDATE,
    InterpretRequest,
    ReviewRequest,
    WorkflowNodes,
)
from riskmind.workflow.state import WorkflowState

CIRCUIT_OPEN_MESSAGE = "Circuit breaker is OPEN - workflow temporarily disabled"

OverallHealth = Literal["healthy", "degraded", "down"]


@dataclass(frozen=True)
class WorkflowHealth:
    overall: OverallHealth
    stages: tuple[StageHealth, ...]
    circuit_breaker: CircuitBreakerState

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "stages": [stage.to_dict() for stage in self.stages],
            "circuit_breaker": self.circuit_breaker.to_dict(),
        }


class WorkflowOrchestrator:
    """Drive one tick through validate, risk, decide, review and record.

    ``run`` consults the circuit breaker once before any stage and updates
    it exactly once afterwards: success when no error accumulated, failure
    otherwise. Runs are independent; the breaker is the only shared state.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        reference: ReferenceDataSource | None = None,
        universe: UniverseSource | None = None,
        narrative: NarrativeGenerator | None = None,
        reasoning: ReasoningService | None = None,
        audit: AuditSink | None = None,
        breaker: CircuitBreaker | None = None,
        metrics: Metrics | None = None,
        stage_config: StageConfig | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.breaker = breaker or CircuitBreaker(self.settings.circuit_breaker)
        self.metrics = metrics
        self.reasoning = reasoning or ReasoningService()
        self.audit = audit
        self._log = structlog.get_logger(__name__)

        config = stage_config or StageConfig.from_agent_config(self.settings.agent)
        observer = self._observe_stage if metrics is not None else None

        self.market_validator = MarketValidator(reference)
        self.risk_engine = RiskEngine(self.settings.risk)
        # LLM calls must finish well inside one stage attempt so the templated
        # fallbacks still run before the stage itself times out.
        llm_budget = config.llm_budget_sec(self.settings.decision.narrative_timeout_sec)
        self.decision_engine = DecisionEngine(
            self.settings.decision,
            self.settings.risk,
            narrative=narrative,
            alternatives=AlternativeFinder(universe, self.settings.decision.alternatives_limit),
            narrative_timeout_sec=llm_budget,
        )

        detailed = self.settings.decision.detailed_interpretation

        async def interpret(request: InterpretRequest) -> str:
            try:
                return await asyncio.wait_for(
                    self.reasoning.interpret_risk(request.tick, request.risk, detailed),
                    timeout=llm_budget,
                )
            except asyncio.TimeoutError:
                self._log.warning(
                    "risk_interpretation_failed", symbol=request.tick.symbol, error="timeout"
                )
                return ReasoningService.fallback_interpretation(request.risk)

        async def review(request: ReviewRequest):
            try:
                return await asyncio.wait_for(
                    self.reasoning.review_decision(
                        request.tick, request.decision, request.pnl_percent
                    ),
                    timeout=llm_budget,
                )
            except asyncio.TimeoutError:
                self._log.warning(
                    "decision_review_failed", symbol=request.decision.symbol, error="timeout"
                )
                return ReasoningService.fallback_review()

        self.stages: dict[str, Stage] = {
            VALIDATE: Stage(
                "market", self.market_validator.process, self.market_validator.validate, config,
                observer=observer,
            ),
            RISK_SCORE: Stage(
                "risk", self.risk_engine.process, self.risk_engine.validate, config,
                observer=observer,
            ),
            INTERPRET: Stage("interpret", interpret, config=config, observer=observer),
            DECIDE: Stage(
                "decision", self.decision_engine.process, self.decision_engine.validate, config,
                observer=observer,
            ),
            REVIEW: Stage("review", review, config=config, observer=observer),
        }
        self.nodes = WorkflowNodes(
            market=self.stages[VALIDATE],
            risk=self.stages[RISK_SCORE],
            interpret=self.stages[INTERPRET],
            decide=self.stages[DECIDE],
            review=self.stages[REVIEW],
            audit=audit,
        )
        self.graph = self._build_graph()

    @classmethod
    def from_settings(cls, settings: Settings, **collaborators: Any) -> "WorkflowOrchestrator":
        """Wire the CSV market data, chat-completion backend and JSONL audit sink."""
        from riskmind.connectors.llm import ChatCompletionClient
        from riskmind.connectors.market_data import CsvMarketData
        from riskmind.ledger.audit import JsonlAuditSink
        from riskmind.strategy.narrative import LLMNarrativeGenerator

        market_data = CsvMarketData(settings.storage.data_path)
        collaborators.setdefault("reference", market_data)
        collaborators.setdefault("universe", market_data)
        if "narrative" not in collaborators or "reasoning" not in collaborators:
            llm_errors = settings.validate_for_llm()
            if llm_errors:
                structlog.get_logger(__name__).info("llm_disabled", reasons=llm_errors)
            else:
                client = ChatCompletionClient(settings.llm, settings.active_llm_api_key)
                collaborators.setdefault("narrative", LLMNarrativeGenerator(client))
                collaborators.setdefault("reasoning", ReasoningService(client))
        collaborators.setdefault("audit", JsonlAuditSink(settings.storage.audit_path))
        return cls(settings, **collaborators)

    async def run(
        self,
        user_id: str,
        raw_tick: Mapping[str, Any],
        position: Position | None = None,
        portfolio: PortfolioSnapshot | None = None,
    ) -> WorkflowState:
        run_id = uuid4().hex
        state = WorkflowState(
            run_id=run_id,
            user_id=user_id,
            raw_tick=raw_tick if isinstance(raw_tick, Mapping) else {},
            position=position,
            portfolio=portfolio,
        )
        log = self._log.bind(run_id=run_id, symbol=state.symbol)

        if not self.breaker.is_allowed():
            log.warning("workflow_rejected", reason="circuit_open")
            self._observe_run("rejected")
            return WorkflowState(
                run_id=run_id,
                user_id=user_id,
                raw_tick=state.raw_tick,
                position=position,
                portfolio=portfolio,
                errors=(CIRCUIT_OPEN_MESSAGE,),
                should_terminate=True,
                circuit_open=True,
            )

        log.info("workflow_started")
        try:
            final = await self.graph.invoke(state)
        except BaseException:
            # Cancellation included: the breaker must hear about every admitted run.
            self.breaker.record_failure()
            log.warning("workflow_aborted")
            self._observe_run("failure")
            raise

        if final.errors:
            self.breaker.record_failure()
            log.warning("workflow_failed", errors=list(final.errors))
            self._observe_run("failure")
        else:
            self.breaker.record_success()
            log.info(
                "workflow_completed",
                action=final.decision.action.value if final.decision else None,
                stages=len(final.audit_trail),
            )
            self._observe_run("success")
            if final.decision is not None and self.metrics is not None:
                self.metrics.observe_decision(final.decision.action.value)
        return final

    def health(self) -> WorkflowHealth:
        stages = tuple(stage.health() for stage in self.stages.values())
        # Branch-only stages (interpret, review) may never have run; they do not count.
        active = [
            health.success_rate
            for stage, health in zip(self.stages.values(), stages)
            if stage.metrics
        ]
        avg = sum(active) / len(active) if active else 1.0
        if avg > 0.9:
            overall: OverallHealth = "healthy"
        elif avg > 0.5:
            overall = "degraded"
        else:
            overall = "down"
        return WorkflowHealth(
            overall=overall,
            stages=stages,
            circuit_breaker=self.breaker.snapshot(),
        )

    def reset_circuit_breaker(self) -> None:
        self.breaker.reset()
        self._update_breaker_gauge()

    def _route_after_risk(self, state: WorkflowState) -> str:
        risk = state.risk_assessment
        if risk is not None and risk.risk_score > self.settings.decision.interpret_risk_threshold:
            return INTERPRET
        return DECIDE

    def _build_graph(self) -> CompiledGraph:
        graph = StateGraph()
        graph.add_node(VALIDATE, self.nodes.validate)
        graph.add_node(RISK_SCORE, self.nodes.risk_score)
        graph.add_node(INTERPRET, self.nodes.interpret)
        graph.add_node(DECIDE, self.nodes.decide)
        graph.add_node(RECORD, self.nodes.record)

        graph.set_entry_point(VALIDATE)
        graph.add_edge(VALIDATE, RISK_SCORE)
        graph.add_conditional_edges(
            RISK_SCORE,
            self._route_after_risk,
            {INTERPRET: INTERPRET, DECIDE: DECIDE},
        )
        graph.add_edge(INTERPRET, DECIDE)
        if self.settings.decision.review_enabled:
            graph.add_node(REVIEW, self.nodes.review)
            graph.add_edge(DECIDE, REVIEW)
            graph.add_edge(REVIEW, RECORD)
        else:
            graph.add_edge(DECIDE, RECORD)
        graph.add_edge(RECORD, END)
        return graph.compile()

    def _observe_stage(self, name: str, metrics: StageMetrics) -> None:
        if self.metrics is not None:
            self.metrics.observe_stage(name, metrics.duration_ms, metrics.success)

    def _observe_run(self, outcome: str) -> None:
        if self.metrics is None:
            return
        self.metrics.observe_run(outcome)
        self._update_breaker_gauge()

    def _update_breaker_gauge(self) -> None:
        if self.metrics is None:
            return
        snapshot = self.breaker.snapshot()
        self.metrics.update_breaker(snapshot.mode, snapshot.failure_rate)
