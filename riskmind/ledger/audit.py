"""Append-only audit sinks for stage outcomes and decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

import orjson
import structlog

from riskmind.models import Decision, utc_now


@dataclass(frozen=True)
class AuditRecord:
    kind: str
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditRecord":
        return cls(
            kind=data["kind"],
            payload=data.get("payload") or {},
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


def _stage_record(stage: str, status: str, detail: str | None, timestamp: datetime) -> AuditRecord:
    return AuditRecord(
        kind="stage",
        payload={"stage": stage, "status": status, "detail": detail},
        timestamp=timestamp,
    )


def _decision_record(decision: Decision, risk_score: float, trace_id: str) -> AuditRecord:
    return AuditRecord(
        kind="decision",
        payload={
            "trace_id": trace_id,
            "symbol": decision.symbol,
            "action": decision.action.value,
            "urgency": decision.urgency,
            "risk_score": risk_score,
            "rationale": decision.rationale,
            "rationale_source": decision.rationale_source,
            "expected_pnl": decision.expected_pnl,
            "alternatives": [alt.symbol for alt in decision.alternatives or ()],
        },
    )


class JsonlAuditSink:
    """Append audit records to ``audit.jsonl`` under ``audit_path``."""

    def __init__(self, audit_path: str | Path) -> None:
        self.audit_path = Path(audit_path)
        self.audit_path.mkdir(parents=True, exist_ok=True)
        self.audit_file = self.audit_path / "audit.jsonl"
        self._log = structlog.get_logger(__name__)

    async def record(
        self,
        stage: str,
        status: str,
        detail: str | None,
        timestamp: datetime,
    ) -> None:
        self._append(_stage_record(stage, status, detail, timestamp))

    async def record_decision(self, decision: Decision, risk_score: float, trace_id: str) -> None:
        self._append(_decision_record(decision, risk_score, trace_id))
        self._log.info("decision_logged", symbol=decision.symbol, trace_id=trace_id)

    def iter_records(self) -> Iterable[AuditRecord]:
        if not self.audit_file.exists():
            return iter(())

        def _iter() -> Iterable[AuditRecord]:
            with open(self.audit_file, "rb") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    yield AuditRecord.from_dict(orjson.loads(line))

        return _iter()

    def tail(self, limit: int) -> list[AuditRecord]:
        if limit <= 0:
            return []
        return list(self.iter_records())[-limit:]

    def _append(self, record: AuditRecord) -> None:
        payload = orjson.dumps(record.to_dict())
        with open(self.audit_file, "ab") as handle:
            handle.write(payload + b"\n")


class InMemoryAuditSink:
    """Keep audit records in a list; used by tests and the CLI dry run."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    async def record(
        self,
        stage: str,
        status: str,
        detail: str | None,
        timestamp: datetime,
    ) -> None:
        self.records.append(_stage_record(stage, status, detail, timestamp))

    async def record_decision(self, decision: Decision, risk_score: float, trace_id: str) -> None:
        self.records.append(_decision_record(decision, risk_score, trace_id))

    @property
    def stages(self) -> list[AuditRecord]:
        return [r for r in self.records if r.kind == "stage"]

    @property
    def decisions(self) -> list[AuditRecord]:
        return [r for r in self.records if r.kind == "decision"]
