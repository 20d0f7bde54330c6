from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from riskmind.models import AuditEntry
from riskmind.workflow.graph import END, StateGraph
from riskmind.workflow.state import WorkflowState, merge_state


def _state(**overrides) -> WorkflowState:
    return WorkflowState(run_id="r1", user_id="u1", raw_tick={"symbol": "XYZ"}, **overrides)


def _entry(stage: str) -> AuditEntry:
    return AuditEntry(stage=stage, status="success", timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc))


def test_merge_returns_new_state_and_leaves_original_untouched() -> None:
    original = _state(audit_trail=(_entry("a"),), errors=("first",))
    merged = merge_state(
        original,
        {"audit_trail": (_entry("b"),), "errors": ("second",), "risk_interpretation": "note"},
    )

    assert merged is not original
    assert [e.stage for e in original.audit_trail] == ["a"]
    assert [e.stage for e in merged.audit_trail] == ["a", "b"]
    assert merged.errors == ("first", "second")
    assert merged.risk_interpretation == "note"
    assert original.risk_interpretation is None


def test_scalar_reducer_ignores_none_updates() -> None:
    state = _state(risk_interpretation="kept")
    assert merge_state(state, {"risk_interpretation": None}).risk_interpretation == "kept"
    assert merge_state(state, {}) is state


def test_merge_rejects_unknown_fields() -> None:
    with pytest.raises(KeyError):
        merge_state(_state(), {"not_a_field": 1})


def _recording_node(name: str, visited: list[str]):
    async def node(state: WorkflowState) -> dict:
        visited.append(name)
        return {"audit_trail": (_entry(name),)}

    return node


def test_conditional_edges_route_on_state() -> None:
    visited: list[str] = []
    graph = StateGraph()
    for name in ("start", "left", "right", "finish"):
        graph.add_node(name, _recording_node(name, visited))
    graph.set_entry_point("start")
    graph.add_conditional_edges(
        "start",
        lambda state: "left" if state.user_id == "go-left" else "right",
        {"left": "left", "right": "right"},
    )
    graph.add_edge("left", "finish")
    graph.add_edge("right", "finish")
    graph.add_edge("finish", END)
    compiled = graph.compile()

    final = asyncio.run(compiled.invoke(_state()))
    assert visited == ["start", "right", "finish"]
    assert [e.stage for e in final.audit_trail] == ["start", "right", "finish"]


def test_compile_rejects_cycles_and_dangling_edges() -> None:
    visited: list[str] = []
    graph = StateGraph()
    graph.add_node("a", _recording_node("a", visited))
    graph.add_node("b", _recording_node("b", visited))
    graph.set_entry_point("a")
    graph.add_edge("a", "b")
    graph.add_edge("b", "a")
    with pytest.raises(ValueError, match="cycle"):
        graph.compile()

    graph = StateGraph()
    graph.add_node("a", _recording_node("a", visited))
    graph.set_entry_point("a")
    graph.add_edge("a", "missing")
    with pytest.raises(ValueError, match="unknown node"):
        graph.compile()


def test_node_without_outgoing_edge_is_rejected() -> None:
    graph = StateGraph()
    graph.add_node("a", _recording_node("a", []))
    graph.set_entry_point("a")
    with pytest.raises(ValueError, match="no outgoing edge"):
        graph.compile()


def test_state_serializes_to_json_friendly_dict() -> None:
    data = _state(audit_trail=(_entry("validate"),), errors=("boom",), should_terminate=True).to_dict()
    assert data["symbol"] == "XYZ"
    assert data["success"] is False
    assert data["audit_trail"][0]["stage"] == "validate"
    assert data["errors"] == ["boom"]
