"""Error taxonomy shared by the pipeline stages and the orchestrator."""

from __future__ import annotations


class RiskMindError(Exception):
    """Base class for all errors raised by the decision core."""


class ValidationError(RiskMindError):
    """Malformed or unsafe input. Never retried; fails the stage immediately."""


class TransientError(RiskMindError):
    """Downstream unavailability. Retried up to the stage's attempt budget."""


class StageTimeoutError(TransientError):
    """A single stage attempt exceeded its hard timeout."""

    def __init__(self, stage: str, timeout_ms: int) -> None:
        super().__init__(f"{stage} timeout after {timeout_ms}ms")
        self.stage = stage
        self.timeout_ms = timeout_ms


class CircuitOpenError(RiskMindError):
    """The circuit breaker denied a new workflow run."""


class NarrativeUnavailableError(TransientError):
    """The text-generation backend could not produce a rationale."""
