"""Stage execution harness and circuit breaker."""

from riskmind.execution.circuit_breaker import BreakerMode, CircuitBreaker, CircuitBreakerState
from riskmind.execution.stage import Stage, StageConfig, StageHealth, StageMetrics, StageResult

__all__ = [
    "BreakerMode",
    "CircuitBreaker",
    "CircuitBreakerState",
    "Stage",
    "StageConfig",
    "StageHealth",
    "StageMetrics",
    "StageResult",
]
