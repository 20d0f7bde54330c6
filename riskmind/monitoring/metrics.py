"""Prometheus metrics definitions."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from riskmind.execution.circuit_breaker import BreakerMode


_BREAKER_MODE_VALUES = {
    BreakerMode.CLOSED: 0,
    BreakerMode.HALF_OPEN: 1,
    BreakerMode.OPEN: 2,
}


class Metrics:
    """Expose core workflow metrics for monitoring."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        # Each instance owns a registry so several orchestrators can coexist in one process.
        self.registry = registry or CollectorRegistry()

        self.stage_duration_ms = Histogram(
            "stage_duration_ms",
            "Stage execution time including retries (ms)",
            ["stage"],
            buckets=(5, 25, 100, 250, 500, 1000, 2500, 5000, 10000, 30000),
            registry=self.registry,
        )
        self.stage_outcome_total = Counter(
            "stage_outcome_total",
            "Stage executions by outcome",
            ["stage", "outcome"],
            registry=self.registry,
        )
        self.workflow_runs_total = Counter(
            "workflow_runs_total",
            "Workflow runs by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.decisions_total = Counter(
            "decisions_total",
            "Decisions produced by action",
            ["action"],
            registry=self.registry,
        )
        self.circuit_breaker_state = Gauge(
            "circuit_breaker_state",
            "Circuit breaker mode (0=closed, 1=half_open, 2=open)",
            registry=self.registry,
        )
        self.circuit_breaker_failure_rate = Gauge(
            "circuit_breaker_failure_rate",
            "Failure rate within the current breaker window",
            registry=self.registry,
        )

    def start_server(self, port: int) -> None:
        start_http_server(port, registry=self.registry)

    def observe_stage(self, stage: str, duration_ms: float, success: bool) -> None:
        self.stage_duration_ms.labels(stage=stage).observe(duration_ms)
        self.stage_outcome_total.labels(
            stage=stage, outcome="success" if success else "failure"
        ).inc()

    def observe_run(self, outcome: str) -> None:
        self.workflow_runs_total.labels(outcome=outcome).inc()

    def observe_decision(self, action: str) -> None:
        self.decisions_total.labels(action=action).inc()

    def update_breaker(self, mode: BreakerMode, failure_rate: float) -> None:
        self.circuit_breaker_state.set(_BREAKER_MODE_VALUES[mode])
        self.circuit_breaker_failure_rate.set(failure_rate)
