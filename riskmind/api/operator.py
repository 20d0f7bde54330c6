"""Operator API for running the workflow and inspecting its health."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from riskmind import __version__
from riskmind.config.settings import Settings, load_settings
from riskmind.ledger.audit import JsonlAuditSink
from riskmind.models import PortfolioSnapshot, Position
from riskmind.workflow.orchestrator import WorkflowOrchestrator
from riskmind.workflow.state import WorkflowState

# Global instances (reused across requests)
_settings: Settings | None = None
_orchestrator: WorkflowOrchestrator | None = None
_start_time: float = 0.0


class PositionPayload(BaseModel):
    symbol: str
    quantity: float
    entry_price: float
    current_price: float | None = None
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    position_id: str | None = None

    def to_position(self, fallback_price: float | None) -> Position:
        return Position(
            symbol=self.symbol,
            quantity=self.quantity,
            entry_price=self.entry_price,
            current_price=(
                self.current_price if self.current_price is not None else fallback_price or 0.0
            ),
            realized_pnl=self.realized_pnl,
            unrealized_pnl=self.unrealized_pnl,
            position_id=self.position_id,
        )


class PortfolioPayload(BaseModel):
    exposures: dict[str, float]
    sectors: dict[str, str] = Field(default_factory=dict)
    total_value: float | None = None

    def to_snapshot(self) -> PortfolioSnapshot:
        return PortfolioSnapshot(
            exposures=dict(self.exposures),
            sectors=dict(self.sectors),
            total_value=self.total_value,
        )


class RunRequest(BaseModel):
    user_id: str = "operator"
    tick: dict[str, Any]
    position: PositionPayload | None = None
    portfolio: PortfolioPayload | None = None


def _get_instances() -> tuple[Settings, WorkflowOrchestrator]:
    """Get or create global instances."""
    global _settings, _orchestrator
    if _settings is None:
        _settings = _orchestrator.settings if _orchestrator is not None else load_settings()
    if _orchestrator is None:
        _orchestrator = WorkflowOrchestrator.from_settings(_settings)
    return _settings, _orchestrator


def _fallback_price(tick: dict[str, Any]) -> float | None:
    try:
        return float(tick.get("price"))
    except (TypeError, ValueError):
        return None


def _run_response(state: WorkflowState) -> JSONResponse:
    """Terminated runs are explicit failures, distinct from low-confidence decisions."""
    body = state.to_dict()
    if state.circuit_open:
        return JSONResponse(status_code=503, content=body)
    if state.errors or state.should_terminate:
        return JSONResponse(status_code=422, content=body)
    return JSONResponse(status_code=200, content=body)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Lifespan context manager for startup/shutdown."""
    global _start_time
    _start_time = time.time()
    yield


def create_app(orchestrator: WorkflowOrchestrator | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    global _orchestrator, _settings
    if orchestrator is not None:
        _orchestrator = orchestrator
        _settings = orchestrator.settings

    app = FastAPI(
        title="RiskMind Operator API",
        description="Run the decision workflow and inspect its health",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Get stage health and circuit breaker state."""
        settings, orch = _get_instances()
        report = orch.health()
        return {
            "status": report.overall,
            "uptime_sec": time.time() - _start_time if _start_time else 0.0,
            "environment": settings.environment,
            **report.to_dict(),
        }

    @app.post("/workflow/run")
    async def run_workflow(request: RunRequest) -> JSONResponse:
        """Run one tick through the workflow."""
        _, orch = _get_instances()
        position = (
            request.position.to_position(_fallback_price(request.tick))
            if request.position is not None
            else None
        )
        portfolio = request.portfolio.to_snapshot() if request.portfolio is not None else None
        state = await orch.run(request.user_id, request.tick, position, portfolio)
        return _run_response(state)

    @app.get("/audit")
    async def get_audit(
        tail: int = Query(default=100, ge=1, le=1000, description="Number of recent records"),
    ) -> dict[str, Any]:
        """Get recent audit records when the JSONL sink is in use."""
        _, orch = _get_instances()
        if not isinstance(orch.audit, JsonlAuditSink):
            return {"count": 0, "records": []}
        records = orch.audit.tail(tail)
        return {
            "count": len(records),
            "records": [record.to_dict() for record in records],
        }

    @app.post("/actions/reset-circuit-breaker")
    async def reset_circuit_breaker(reason: str = Query(default="operator_api")) -> dict[str, Any]:
        """Force the circuit breaker closed with zeroed counters."""
        _, orch = _get_instances()
        previous = orch.breaker.snapshot()
        orch.reset_circuit_breaker()
        return {
            "success": True,
            "previous_state": previous.mode.value,
            "state": orch.breaker.snapshot().mode.value,
            "reason": reason,
        }

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API info."""
        return {
            "name": "RiskMind Operator API",
            "version": __version__,
            "endpoints": {
                "health": "GET /health",
                "run": "POST /workflow/run",
                "audit": "GET /audit?tail=N",
                "reset_circuit_breaker": "POST /actions/reset-circuit-breaker?reason=<text>",
            },
        }

    return app
