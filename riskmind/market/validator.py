"""Market tick validation and enrichment."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

import structlog

from riskmind.connectors.base import ReferenceDataSource
from riskmind.errors import ValidationError
from riskmind.market.normalizers import (
    normalize_symbol,
    normalize_timestamp,
    parse_number,
    pick,
    strip_suffix,
)
from riskmind.market.validators import check_ranges, validate_price_relationships, validate_symbol
from riskmind.models import DerivedMetrics, Tick, ValidatedTick


def price_momentum(open_price: float, close: float) -> float:
    """Intraday momentum in percent: ``(close - open) / open * 100``."""
    if open_price == 0:
        return 0.0
    return (close - open_price) / open_price * 100


class MarketValidator:
    """Turn a raw tick payload into an immutable ``ValidatedTick``.

    Steps: symbol check, normalization, numeric parsing, enrichment of
    missing optional fields from the reference source, derived metrics and
    finally the price-relationship invariants. Any rule violation raises
    ``ValidationError``; enrichment misses are only logged.
    """

    def __init__(self, reference: ReferenceDataSource | None = None) -> None:
        self.reference = reference
        self._log = structlog.get_logger(__name__)

    def validate(self, payload: Any) -> None:
        if not isinstance(payload, Mapping):
            raise ValidationError("Tick payload must be a mapping")
        symbol = payload.get("symbol")
        if not isinstance(symbol, str) or not symbol.strip():
            raise ValidationError("Tick symbol is missing")
        if not validate_symbol(symbol.strip().upper()):
            self._log.warning("invalid_symbol_format", symbol=symbol)
            raise ValidationError(f"Invalid symbol format: {symbol}")

    async def process(self, payload: Mapping[str, Any]) -> ValidatedTick:
        symbol = normalize_symbol(payload["symbol"])
        self._log.info("tick_processing", symbol=symbol)

        tick = self.parse_tick(payload, symbol)
        check_ranges(tick)
        tick = self.enrich(tick)

        if not validate_price_relationships(tick):
            raise ValidationError(
                f"Invalid price relationships for {symbol}: "
                f"low={tick.low} open={tick.open} close={tick.close} "
                f"price={tick.price} high={tick.high}"
            )

        validated = ValidatedTick(
            **{f: getattr(tick, f) for f in Tick.__dataclass_fields__},
            normalized=True,
            enriched=True,
            derived=DerivedMetrics(price_momentum=price_momentum(tick.open, tick.close)),
        )
        self._log.info("tick_validated", symbol=symbol, momentum=validated.derived.price_momentum)
        return validated

    @staticmethod
    def parse_tick(payload: Mapping[str, Any], symbol: str) -> Tick:
        sentiment = pick(payload, "sentiment")
        volatility = pick(payload, "volatility30d", "volatility_30d")
        market_cap = pick(payload, "marketCap", "market_cap")
        pe_ratio = pick(payload, "peRatio", "pe_ratio")
        sector = pick(payload, "sector")
        return Tick(
            symbol=symbol,
            price=parse_number(payload.get("price"), field="price"),
            open=parse_number(payload.get("open"), field="open"),
            high=parse_number(payload.get("high"), field="high"),
            low=parse_number(payload.get("low"), field="low"),
            close=parse_number(payload.get("close"), field="close"),
            volume=parse_number(payload.get("volume"), field="volume"),
            change=parse_number(payload.get("change"), default=0.0, field="change"),
            change_percent=parse_number(
                pick(payload, "changePercent", "change_percent"), default=0.0, field="changePercent"
            ),
            timestamp=normalize_timestamp(payload.get("timestamp")),
            sentiment=parse_number(sentiment, field="sentiment") if sentiment is not None else None,
            volatility_30d=(
                parse_number(volatility, field="volatility30d") if volatility is not None else None
            ),
            sector=str(sector) if sector is not None else None,
            market_cap=(
                int(parse_number(market_cap, field="marketCap")) if market_cap is not None else None
            ),
            pe_ratio=parse_number(pe_ratio, field="peRatio") if pe_ratio is not None else None,
        )

    def enrich(self, tick: Tick) -> Tick:
        """Backfill missing optional fields; never fails the stage."""
        if tick.sentiment is not None and tick.volatility_30d is not None and tick.sector:
            return tick
        if self.reference is None:
            return tick
        bare = strip_suffix(tick.symbol)
        try:
            ref = self.reference.get(bare)
        except Exception as exc:
            self._log.warning("enrichment_failed", symbol=bare, error=str(exc))
            return tick
        if not ref:
            self._log.info("enrichment_miss", symbol=bare)
            return tick

        updates: dict[str, Any] = {}
        if tick.sentiment is None:
            value = _optional_float(pick(ref, "sentiment"))
            if value is not None and -1.0 <= value <= 1.0:
                updates["sentiment"] = value
        if tick.volatility_30d is None:
            value = _optional_float(pick(ref, "volatility30d", "volatility_30d"))
            if value is not None and value >= 0:
                updates["volatility_30d"] = value
        if not tick.sector and pick(ref, "sector") is not None:
            updates["sector"] = str(pick(ref, "sector"))
        if tick.market_cap is None:
            value = _optional_float(pick(ref, "marketCap", "market_cap"))
            if value is not None:
                updates["market_cap"] = int(value)
        if tick.pe_ratio is None:
            value = _optional_float(pick(ref, "peRatio", "pe_ratio"))
            if value is not None:
                updates["pe_ratio"] = value

        if updates:
            self._log.info("tick_enriched", symbol=bare, fields=sorted(updates))
        return replace(tick, **updates)


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return parse_number(value)
    except ValidationError:
        return None
