"""Risk engine turning a validated tick into a risk assessment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

import structlog

from riskmind.config.settings import RiskConfig
from riskmind.errors import ValidationError
from riskmind.models import (
    PortfolioRisk,
    PortfolioSnapshot,
    RiskAssessment,
    RiskFactors,
    ValidatedTick,
    utc_now,
)
from riskmind.risk.scoring import RiskScorer
from riskmind.risk.var import single_tick_var


@dataclass(frozen=True)
class RiskRequest:
    """Stage input: the validated tick plus optional portfolio context."""

    tick: ValidatedTick
    portfolio: PortfolioSnapshot | None = None


class RiskEngine:
    """Score a validated tick.

    VaR uses the single-tick estimate because the live pipeline sees one tick
    at a time; the series-based estimators in ``riskmind.risk.var`` are
    available to callers with history.
    """

    def __init__(self, config: RiskConfig | None = None) -> None:
        self.config = config or RiskConfig()
        self.scorer = RiskScorer(self.config)
        self._log = structlog.get_logger(__name__)

    def validate(self, request: RiskRequest) -> None:
        tick = request.tick
        if tick is None or not tick.symbol:
            raise ValidationError("Invalid tick data for risk assessment")
        if not tick.normalized or not tick.enriched:
            raise ValidationError("Tick data was not validated by the market stage")

    async def process(self, request: RiskRequest) -> RiskAssessment:
        return self.assess(request.tick, request.portfolio)

    def assess(
        self,
        tick: ValidatedTick,
        portfolio: PortfolioSnapshot | None = None,
    ) -> RiskAssessment:
        factors = self.calculate_factors(tick, portfolio)
        score = self.scorer.composite_score(factors)
        level = self.scorer.risk_level(score)
        codes = self.scorer.reason_codes(factors, tick.sentiment)
        self._log.info(
            "risk_assessed",
            symbol=tick.symbol,
            risk_score=round(score, 4),
            risk_level=level.value,
            reason_codes=list(codes),
        )
        return RiskAssessment(
            symbol=tick.symbol,
            risk_score=score,
            risk_level=level,
            factors=factors,
            reason_codes=codes,
            timestamp=utc_now(),
        )

    def calculate_factors(
        self,
        tick: ValidatedTick,
        portfolio: PortfolioSnapshot | None = None,
    ) -> RiskFactors:
        volatility = (
            tick.volatility_30d if tick.volatility_30d is not None else self.config.default_volatility
        )
        concentration = 0.0
        if portfolio is not None:
            concentration = self.scorer.concentration_risk(
                portfolio.exposures, portfolio.portfolio_value
            )
        return RiskFactors(
            var95=single_tick_var(tick.price, volatility),
            volatility=volatility,
            sentiment_risk=self.scorer.sentiment_risk(tick.sentiment),
            concentration_risk=concentration,
        )

    def assess_portfolio(
        self,
        ticks: Sequence[ValidatedTick],
        quantities: Mapping[str, float],
    ) -> PortfolioRisk:
        """Exposure-weighted risk across positions."""
        exposure_by_symbol: dict[str, float] = {}
        exposure_by_sector: dict[str, float] = {}
        weighted_risk = 0.0
        total = 0.0
        for tick in ticks:
            exposure = tick.price * quantities.get(tick.symbol, 0.0)
            exposure_by_symbol[tick.symbol] = exposure
            sector = tick.sector or "UNKNOWN"
            exposure_by_sector[sector] = exposure_by_sector.get(sector, 0.0) + exposure
            total += exposure
            weighted_risk += self.assess(tick).risk_score * exposure

        overall = weighted_risk / total if total > 0 else 0.0
        concentration = self.scorer.concentration_risk(exposure_by_symbol, total)
        self._log.info(
            "portfolio_risk_assessed",
            positions=len(exposure_by_symbol),
            overall_risk=round(overall, 4),
            concentration_risk=round(concentration, 4),
        )
        return PortfolioRisk(
            overall_risk=overall,
            exposure_by_symbol=exposure_by_symbol,
            exposure_by_sector=exposure_by_sector,
            concentration_risk=concentration,
        )
