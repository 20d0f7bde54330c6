"""Audit sinks recording stage outcomes and decisions."""

from riskmind.ledger.audit import AuditRecord, InMemoryAuditSink, JsonlAuditSink

__all__ = ["AuditRecord", "InMemoryAuditSink", "JsonlAuditSink"]
