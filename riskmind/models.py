"""Shared data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal


class ActionType(str, Enum):
    """Recommended action for a position."""

    HOLD = "HOLD"
    REDUCE = "REDUCE"
    EXIT = "EXIT"
    STOP_LOSS = "STOP_LOSS"
    REALLOCATE = "REALLOCATE"
    BUY = "BUY"


class RiskLevel(str, Enum):
    """Discrete risk bucket derived from the composite score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskReasonCode(str, Enum):
    HIGH_VOLATILITY = "high_volatility"
    NEGATIVE_SENTIMENT = "negative_sentiment"
    HIGH_VAR = "high_var"
    CONCENTRATION_RISK = "concentration_risk"


AuditStatus = Literal["success", "failure"]
RationaleSource = Literal["rules", "llm", "fallback"]
ReviewVerdict = Literal["APPROVE", "REVIEW_NEEDED"]


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Tick:
    symbol: str
    price: float
    open: float
    high: float
    low: float
    close: float
    volume: float
    change: float
    change_percent: float
    timestamp: datetime
    sentiment: float | None = None
    volatility_30d: float | None = None
    sector: str | None = None
    market_cap: int | None = None
    pe_ratio: float | None = None


@dataclass(frozen=True)
class DerivedMetrics:
    price_momentum: float
    volume_change: float = 0.0


@dataclass(frozen=True)
class ValidatedTick(Tick):
    """Tick that passed validation and enrichment. Never mutated."""

    normalized: bool = True
    enriched: bool = True
    derived: DerivedMetrics = field(default_factory=lambda: DerivedMetrics(price_momentum=0.0))


@dataclass(frozen=True)
class RiskFactors:
    var95: float
    volatility: float
    sentiment_risk: float
    concentration_risk: float


@dataclass(frozen=True)
class RiskAssessment:
    symbol: str
    risk_score: float
    risk_level: RiskLevel
    factors: RiskFactors
    reason_codes: tuple[str, ...]
    timestamp: datetime


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Current exposures used for concentration and portfolio-level risk."""

    exposures: dict[str, float]
    sectors: dict[str, str] = field(default_factory=dict)
    total_value: float | None = None

    @property
    def portfolio_value(self) -> float:
        if self.total_value is not None:
            return self.total_value
        return sum(self.exposures.values())


@dataclass(frozen=True)
class PortfolioRisk:
    overall_risk: float
    exposure_by_symbol: dict[str, float]
    exposure_by_sector: dict[str, float]
    concentration_risk: float


@dataclass(frozen=True)
class Position:
    symbol: str
    quantity: float
    entry_price: float
    current_price: float
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    position_id: str | None = None

    @property
    def exposure(self) -> float:
        return self.current_price * self.quantity


@dataclass(frozen=True)
class AlternativeStock:
    symbol: str
    reason: str
    risk_score: float
    sentiment: float
    score: float
    sector: str | None = None
    price: float | None = None


@dataclass(frozen=True)
class Decision:
    symbol: str
    action: ActionType
    rationale: str
    urgency: int
    risk_score: float
    expected_pnl: float | None = None
    alternatives: tuple[AlternativeStock, ...] | None = None
    rationale_source: RationaleSource = "rules"


@dataclass(frozen=True)
class ReviewResult:
    confidence: float
    concerns: str
    verdict: ReviewVerdict
    reasoning: str


@dataclass(frozen=True)
class AuditEntry:
    stage: str
    status: AuditStatus
    timestamp: datetime
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "status": self.status,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class NewsItem:
    symbol: str
    headline: str
    sentiment_score: float
    source: str | None = None
    published_at: datetime | None = None
