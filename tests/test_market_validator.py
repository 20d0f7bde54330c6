from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from riskmind.errors import ValidationError
from riskmind.market.normalizers import normalize_symbol, normalize_timestamp, parse_number, strip_suffix
from riskmind.market.validator import MarketValidator, price_momentum


class StubReference:
    def __init__(self, rows: dict | None = None, error: Exception | None = None) -> None:
        self.rows = rows or {}
        self.error = error
        self.lookups: list[str] = []

    def get(self, symbol: str):
        self.lookups.append(symbol)
        if self.error is not None:
            raise self.error
        return self.rows.get(symbol)


def _tick(**overrides) -> dict:
    base = {
        "symbol": "tcs",
        "price": 100.0,
        "open": 98.0,
        "high": 101.0,
        "low": 97.0,
        "close": 100.0,
        "volume": 12000,
        "timestamp": "2026-01-05T09:15:00Z",
    }
    base.update(overrides)
    return base


def _process(validator: MarketValidator, payload: dict):
    validator.validate(payload)
    return asyncio.run(validator.process(payload))


def test_symbol_normalization_adds_exchange_suffix() -> None:
    assert normalize_symbol(" tcs ") == "TCS.NS"
    assert normalize_symbol("reliance.bo") == "RELIANCE.BO"
    assert normalize_symbol("INFY.NS") == "INFY.NS"
    assert strip_suffix("INFY.NS") == "INFY"


def test_validate_rejects_missing_or_malformed_symbol() -> None:
    validator = MarketValidator()
    for payload in ({}, {"symbol": ""}, {"symbol": "BAD SYMBOL"}, {"symbol": "A" * 21}, "TCS"):
        with pytest.raises(ValidationError):
            validator.validate(payload)


def test_process_builds_validated_tick_with_defaults() -> None:
    tick = _process(MarketValidator(), _tick())

    assert tick.symbol == "TCS.NS"
    assert tick.normalized and tick.enriched
    assert tick.change == 0.0
    assert tick.change_percent == 0.0
    assert tick.timestamp == datetime(2026, 1, 5, 9, 15, tzinfo=timezone.utc)
    assert tick.derived.price_momentum == pytest.approx((100 - 98) / 98 * 100)
    assert tick.sentiment is None


def test_camel_case_and_string_numbers_are_parsed() -> None:
    tick = _process(
        MarketValidator(),
        _tick(price="100.5", changePercent="1.25", volatility30d="0.3", peRatio="22.5", marketCap="1000"),
    )
    assert tick.price == 100.5
    assert tick.change_percent == 1.25
    assert tick.volatility_30d == 0.3
    assert tick.pe_ratio == 22.5
    assert tick.market_cap == 1000


def test_missing_required_number_raises() -> None:
    payload = _tick()
    del payload["volume"]
    with pytest.raises(ValidationError, match="volume"):
        _process(MarketValidator(), payload)


@pytest.mark.parametrize(
    "overrides",
    [
        {"low": 99.0},
        {"high": 99.5},
        {"price": 102.0},
        {"open": 96.0},
    ],
)
def test_price_relationship_violations_are_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError, match="Invalid price relationships"):
        _process(MarketValidator(), _tick(**overrides))


def test_out_of_range_sentiment_is_rejected_not_clamped() -> None:
    with pytest.raises(ValidationError, match="sentiment"):
        _process(MarketValidator(), _tick(sentiment=1.5))


def test_enrichment_backfills_missing_fields_from_bare_symbol() -> None:
    reference = StubReference(
        {"TCS": {"sentiment": 0.4, "volatility30d": 0.22, "sector": "IT", "pe_ratio": 30.0}}
    )
    tick = _process(MarketValidator(reference), _tick())

    assert reference.lookups == ["TCS"]
    assert tick.sentiment == 0.4
    assert tick.volatility_30d == 0.22
    assert tick.sector == "IT"
    assert tick.pe_ratio == 30.0


def test_enrichment_keeps_values_already_on_the_tick() -> None:
    reference = StubReference({"TCS": {"sentiment": 0.9, "volatility30d": 0.5, "sector": "IT"}})
    tick = _process(MarketValidator(reference), _tick(sentiment=-0.1))

    assert tick.sentiment == -0.1
    assert tick.volatility_30d == 0.5


def test_enrichment_skipped_when_all_optional_fields_present() -> None:
    reference = StubReference()
    _process(MarketValidator(reference), _tick(sentiment=0.1, volatility30d=0.2, sector="IT"))
    assert reference.lookups == []


def test_enrichment_failure_is_not_fatal() -> None:
    reference = StubReference(error=RuntimeError("reference store down"))
    tick = _process(MarketValidator(reference), _tick())

    assert tick.sentiment is None
    assert tick.volatility_30d is None
    assert tick.sector is None


def test_price_momentum_is_zero_for_zero_open() -> None:
    assert price_momentum(0.0, 10.0) == 0.0
    assert price_momentum(100.0, 90.0) == pytest.approx(-10.0)


def test_parse_number_and_timestamp_helpers() -> None:
    assert parse_number(None, default=0.0) == 0.0
    assert parse_number("3.5") == 3.5
    with pytest.raises(ValidationError):
        parse_number("abc", field="price")
    assert normalize_timestamp(1_700_000_000).year == 2023
    assert normalize_timestamp(1_700_000_000_000).year == 2023
    with pytest.raises(ValidationError):
        normalize_timestamp("not a date")
