"""Monitoring utilities."""

from riskmind.monitoring.logging import configure_logging
from riskmind.monitoring.metrics import Metrics

__all__ = [
    "configure_logging",
    "Metrics",
]
