"""Risk estimators, composite scoring and the risk engine."""

from riskmind.risk.engine import RiskEngine, RiskRequest
from riskmind.risk.scoring import RiskScorer

__all__ = ["RiskEngine", "RiskRequest", "RiskScorer"]
