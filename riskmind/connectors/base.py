"""Collaborator contracts consumed by the decision core."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Protocol

from riskmind.models import Decision, NewsItem

if TYPE_CHECKING:
    from riskmind.strategy.narrative import NarrativeContext


class ReferenceDataSource(Protocol):
    """Reference fields (sentiment, volatility30d, sector, ...) keyed by bare symbol."""

    def get(self, symbol: str) -> Mapping[str, Any] | None: ...


class UniverseSource(Protocol):
    """All known ticks plus news, used when searching for alternatives."""

    def list_all_ticks(self) -> list[Mapping[str, Any]]: ...

    def list_news(self) -> list[NewsItem]: ...


class TextGenerator(Protocol):
    """Return prose for a prompt or raise."""

    async def complete(self, prompt: str, system: str | None = None) -> str: ...


class NarrativeGenerator(Protocol):
    """Turn structured decision inputs into rationale prose, or raise."""

    async def generate(self, context: NarrativeContext) -> str: ...


class AuditSink(Protocol):
    """Best-effort record of stage outcomes and final decisions."""

    async def record(
        self,
        stage: str,
        status: str,
        detail: str | None,
        timestamp: datetime,
    ) -> None: ...

    async def record_decision(
        self,
        decision: Decision,
        risk_score: float,
        trace_id: str,
    ) -> None: ...
