"""CSV-backed reference data and alternatives universe."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
import structlog

from riskmind.models import NewsItem

STOCK_TICKS_FILE = "stock_ticks.csv"
NEWS_FILE = "news_sentiment.csv"

_REFERENCE_FIELDS = ("sentiment", "volatility30d", "sector", "market_cap", "pe_ratio")


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame rows as dicts with missing cells mapped to None."""
    if df.empty:
        return []
    cleaned = df.astype(object).where(df.notna(), None)
    return cleaned.to_dict(orient="records")


def _parse_published(value: Any) -> datetime | None:
    if value is None:
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime().astimezone(timezone.utc)


class CsvMarketData:
    """Serve reference lookups and the alternatives universe from CSV exports.

    Expects ``stock_ticks.csv`` (symbol, price, open, high, low, close, volume,
    change, change_percent, timestamp, sentiment, volatility30d, market_cap,
    pe_ratio, sector) and optionally ``news_sentiment.csv`` (symbol, date,
    headline, sentiment_score, source, published_at) under ``data_path``.
    Files are read once and cached; call ``reload`` to pick up changes.
    """

    def __init__(self, data_path: str | Path) -> None:
        self.data_path = Path(data_path)
        self._ticks: pd.DataFrame | None = None
        self._news: list[NewsItem] | None = None
        self._log = structlog.get_logger(__name__)

    def reload(self) -> None:
        self._ticks = None
        self._news = None

    def get(self, symbol: str) -> Mapping[str, Any] | None:
        ticks = self._load_ticks()
        if ticks.empty:
            return None
        match = ticks[ticks["symbol"] == symbol.upper()]
        if match.empty:
            return None
        row = _records(match.tail(1))[0]
        return {key: row.get(key) for key in _REFERENCE_FIELDS if row.get(key) is not None}

    def list_all_ticks(self) -> list[Mapping[str, Any]]:
        return _records(self._load_ticks())

    def list_news(self) -> list[NewsItem]:
        if self._news is None:
            self._news = self._load_news()
        return self._news

    def _load_ticks(self) -> pd.DataFrame:
        if self._ticks is None:
            path = self.data_path / STOCK_TICKS_FILE
            df = pd.read_csv(path, skipinitialspace=True)
            df.columns = [str(col).strip() for col in df.columns]
            if "symbol" in df.columns:
                df["symbol"] = df["symbol"].astype(str).str.strip().str.upper()
            self._log.info("stock_ticks_loaded", path=str(path), rows=len(df))
            self._ticks = df
        return self._ticks

    def _load_news(self) -> list[NewsItem]:
        path = self.data_path / NEWS_FILE
        if not path.exists():
            self._log.info("news_file_missing", path=str(path))
            return []
        df = pd.read_csv(path, skipinitialspace=True)
        items = []
        for row in _records(df):
            if not row.get("symbol") or not row.get("headline"):
                continue
            try:
                score = float(row.get("sentiment_score") or 0.0)
            except (TypeError, ValueError):
                score = 0.0
            items.append(
                NewsItem(
                    symbol=str(row["symbol"]).strip().upper(),
                    headline=str(row["headline"]),
                    sentiment_score=score,
                    source=row.get("source"),
                    published_at=_parse_published(row.get("published_at")),
                )
            )
        self._log.info("news_loaded", path=str(path), rows=len(items))
        return items
