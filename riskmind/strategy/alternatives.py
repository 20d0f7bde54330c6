"""Search the known universe for lower-risk replacement positions."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import structlog

from riskmind.connectors.base import UniverseSource
from riskmind.market.normalizers import pick, strip_suffix
from riskmind.models import AlternativeStock, NewsItem

MAX_CANDIDATE_RISK = 0.4
MIN_CANDIDATE_SENTIMENT = 0.3
DEFAULT_CANDIDATE_VOLATILITY = 0.2
HEADLINE_CHARS = 80


def estimate_risk(volatility: float, sentiment: float) -> float:
    """Cheap risk proxy for candidates that have not been through the risk engine."""
    volatility_risk = min(volatility / 0.5, 1.0)
    sentiment_risk = (1 - sentiment) / 2
    return volatility_risk * 0.6 + sentiment_risk * 0.4


def normalize_momentum(change_percent: float) -> float:
    """Map a -10%..+10% daily change onto 0..1."""
    return max(0.0, min(1.0, (change_percent + 10) / 20))


def _float(value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    return float(value)


class AlternativeFinder:
    """Rank universe ticks by ``0.4*sentiment + 0.4*(1-risk) + 0.2*momentum``.

    Candidates must have estimated risk below 0.4 and sentiment above 0.3.
    Any failure reading the universe yields an empty list; a single malformed
    row is skipped.
    """

    def __init__(self, universe: UniverseSource | None, limit: int = 5) -> None:
        self.universe = universe
        self.limit = limit
        self._log = structlog.get_logger(__name__)

    def find_alternatives(
        self,
        current_symbol: str,
        exclude: Iterable[str] = (),
        limit: int | None = None,
        sector: str | None = None,
    ) -> list[AlternativeStock]:
        if self.universe is None:
            return []
        limit = self.limit if limit is None else limit
        skip = {strip_suffix(s) for s in exclude}
        if current_symbol:
            skip.add(strip_suffix(current_symbol))

        try:
            ticks = self.universe.list_all_ticks()
            news = self.universe.list_news()
        except Exception as exc:
            self._log.error("alternatives_lookup_failed", symbol=current_symbol, error=str(exc))
            return []

        candidates = []
        for tick in ticks:
            if not tick.get("symbol"):
                continue
            try:
                candidate = self._candidate(tick, news)
            except (TypeError, ValueError) as exc:
                self._log.warning(
                    "alternative_candidate_skipped", symbol=str(tick["symbol"]), error=str(exc)
                )
                continue
            if candidate is not None and strip_suffix(candidate.symbol) not in skip:
                candidates.append(candidate)

        if sector is not None:
            candidates = [c for c in candidates if c.sector == sector]
        candidates.sort(key=lambda c: c.score, reverse=True)
        top = candidates[:limit]
        self._log.info("alternatives_found", symbol=current_symbol, count=len(top))
        return top

    def find_sector_alternatives(
        self,
        sector: str,
        exclude: Iterable[str] = (),
        limit: int = 3,
    ) -> list[AlternativeStock]:
        return self.find_alternatives("", exclude=exclude, limit=limit, sector=sector)

    def _candidate(self, tick: Mapping[str, Any], news: list[NewsItem]) -> AlternativeStock | None:
        symbol = str(tick["symbol"]).strip().upper()
        sentiment = _float(pick(tick, "sentiment"), 0.0)
        volatility = _float(
            pick(tick, "volatility30d", "volatility_30d"), DEFAULT_CANDIDATE_VOLATILITY
        )
        change_percent = _float(pick(tick, "change_percent", "changePercent"), 0.0)

        risk = estimate_risk(volatility, sentiment)
        if risk >= MAX_CANDIDATE_RISK or sentiment <= MIN_CANDIDATE_SENTIMENT:
            return None

        score = sentiment * 0.4 + (1 - risk) * 0.4 + normalize_momentum(change_percent) * 0.2
        price = pick(tick, "price")
        sector = pick(tick, "sector")
        return AlternativeStock(
            symbol=symbol,
            reason=self._reason(symbol, news, sentiment, risk),
            risk_score=risk,
            sentiment=sentiment,
            score=score,
            sector=str(sector) if sector is not None else None,
            price=float(price) if price is not None else None,
        )

    @staticmethod
    def _reason(symbol: str, news: list[NewsItem], sentiment: float, risk: float) -> str:
        symbol_news = [item for item in news if strip_suffix(item.symbol) == strip_suffix(symbol)]
        if symbol_news:
            best = max(symbol_news, key=lambda item: item.sentiment_score)
            return f'Strong fundamentals with positive news: "{best.headline[:HEADLINE_CHARS]}..."'
        if sentiment > 0.6 and risk < 0.3:
            return "Strong positive sentiment with low risk profile"
        if risk < 0.25:
            return "Low risk alternative with stable performance"
        return "Moderate risk with positive market outlook"
