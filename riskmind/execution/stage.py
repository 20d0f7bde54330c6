"""Retry/timeout/metrics harness every pipeline stage runs inside.

A ``Stage`` wraps one async ``process`` callable and an optional synchronous
``validate`` callable. Stages are composed, not subclassed: the market, risk,
decision and reasoning components each hand their own plain functions to a
``Stage`` instance.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

from riskmind.config.settings import AgentConfig
from riskmind.errors import StageTimeoutError, ValidationError
from riskmind.models import utc_now

InT = TypeVar("InT")
OutT = TypeVar("OutT")

HEALTH_WINDOW = 20
MAX_RECENT_ERRORS = 5
# Share of a stage timeout an LLM call inside that stage may use before it
# must give up and leave room for the templated fallback.
LLM_BUDGET_SHARE = 0.5

Sleeper = Callable[[float], Awaitable[Any]]
StageObserver = Callable[[str, "StageMetrics"], None]


@dataclass(frozen=True)
class StageConfig:
    retry_attempts: int = 3
    timeout_ms: int = 5000
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 8000
    metrics_history: int = 100

    @classmethod
    def from_agent_config(cls, config: AgentConfig) -> "StageConfig":
        return cls(
            retry_attempts=config.retry_attempts,
            timeout_ms=config.timeout_ms,
            backoff_base_ms=config.backoff_base_ms,
            backoff_max_ms=config.backoff_max_ms,
            metrics_history=config.metrics_history,
        )

    def llm_budget_sec(self, ceiling_sec: float) -> float:
        """Seconds an LLM call may take inside one attempt of this stage."""
        return min(ceiling_sec, self.timeout_ms / 1000 * LLM_BUDGET_SHARE)


def backoff_delay_ms(attempt: int, base_ms: int = 1000, max_ms: int = 8000) -> int:
    """Delay before the attempt following ``attempt`` (1-based)."""
    return min(base_ms * 2 ** (attempt - 1), max_ms)


@dataclass(frozen=True)
class StageMetrics:
    duration_ms: float
    success: bool
    timestamp: datetime
    attempts: int = 0
    error: str | None = None


@dataclass(frozen=True)
class StageResult(Generic[OutT]):
    """Tagged outcome of a stage execution."""

    success: bool
    metrics: StageMetrics
    output: OutT | None = None
    error: str | None = None


@dataclass(frozen=True)
class StageHealth:
    name: str
    enabled: bool
    success_rate: float
    avg_duration_ms: float
    recent_errors: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "enabled": self.enabled,
            "success_rate": self.success_rate,
            "avg_duration_ms": self.avg_duration_ms,
            "recent_errors": list(self.recent_errors),
        }


class Stage(Generic[InT, OutT]):
    """Run ``process`` with validation, bounded retries and a per-attempt timeout."""

    def __init__(
        self,
        name: str,
        process: Callable[[InT], Awaitable[OutT]],
        validate: Callable[[InT], bool | None] | None = None,
        config: StageConfig | None = None,
        *,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        observer: StageObserver | None = None,
    ) -> None:
        self.name = name
        self.config = config or StageConfig()
        self.enabled = True
        self.observer = observer
        self._process = process
        self._validate = validate
        self._sleep = sleep
        self._clock = clock
        self._metrics: deque[StageMetrics] = deque(maxlen=self.config.metrics_history)
        self._log = structlog.get_logger(__name__).bind(stage=name)

    @property
    def metrics(self) -> list[StageMetrics]:
        return list(self._metrics)

    async def execute(self, payload: InT) -> StageResult[OutT]:
        started = self._clock()
        if not self.enabled:
            return self._failure(started, f"{self.name} is disabled", attempts=0)

        try:
            self._check(payload)
        except Exception as exc:
            self._log.warning("stage_validation_failed", error=str(exc))
            return self._failure(started, str(exc) or "Validation failed", attempts=0)

        max_attempts = self.config.retry_attempts
        last_error: str | None = None
        attempts = 0
        for attempt in range(1, max_attempts + 1):
            attempts = attempt
            self._log.info("stage_attempt", attempt=attempt, max_attempts=max_attempts)
            try:
                output = await self._attempt(payload)
            except ValidationError as exc:
                last_error = str(exc)
                self._log.warning("stage_input_rejected", attempt=attempt, error=last_error)
                break
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                self._log.warning("stage_attempt_failed", attempt=attempt, error=last_error)
                if attempt < max_attempts:
                    delay_ms = backoff_delay_ms(
                        attempt, self.config.backoff_base_ms, self.config.backoff_max_ms
                    )
                    await self._sleep(delay_ms / 1000)
                continue

            metrics = self._record(started, True, attempts)
            self._log.info("stage_completed", duration_ms=round(metrics.duration_ms, 2))
            return StageResult(success=True, output=output, metrics=metrics)

        return self._failure(started, last_error or "All retry attempts failed", attempts)

    def health(self) -> StageHealth:
        recent = list(self._metrics)[-HEALTH_WINDOW:]
        successes = sum(1 for m in recent if m.success)
        success_rate = successes / len(recent) if recent else 0.0
        avg_duration = sum(m.duration_ms for m in recent) / len(recent) if recent else 0.0
        errors = [m.error for m in recent if not m.success and m.error]
        return StageHealth(
            name=self.name,
            enabled=self.enabled,
            success_rate=success_rate,
            avg_duration_ms=avg_duration,
            recent_errors=tuple(errors[-MAX_RECENT_ERRORS:]),
        )

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        self._log.info("stage_enabled_changed", enabled=enabled)

    def _check(self, payload: InT) -> None:
        if self._validate is None:
            return
        if self._validate(payload) is False:
            raise ValidationError(f"Invalid input for {self.name}")

    async def _attempt(self, payload: InT) -> OutT:
        # wait_for cancels the losing attempt, so a late result is discarded.
        try:
            return await asyncio.wait_for(
                self._process(payload), timeout=self.config.timeout_ms / 1000
            )
        except asyncio.TimeoutError as exc:
            raise StageTimeoutError(self.name, self.config.timeout_ms) from exc

    def _failure(self, started: float, error: str, attempts: int) -> StageResult[OutT]:
        metrics = self._record(started, False, attempts, error)
        self._log.error("stage_failed", error=error, attempts=attempts)
        return StageResult(success=False, error=error, metrics=metrics)

    def _record(
        self,
        started: float,
        success: bool,
        attempts: int,
        error: str | None = None,
    ) -> StageMetrics:
        metrics = StageMetrics(
            duration_ms=(self._clock() - started) * 1000,
            success=success,
            timestamp=utc_now(),
            attempts=attempts,
            error=error,
        )
        self._metrics.append(metrics)
        if self.observer is not None:
            self.observer(self.name, metrics)
        return metrics
