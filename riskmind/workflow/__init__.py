"""Workflow graph, immutable state and the orchestrator entry point."""

from riskmind.workflow.graph import END, CompiledGraph, StateGraph
from riskmind.workflow.orchestrator import WorkflowHealth, WorkflowOrchestrator
from riskmind.workflow.state import WorkflowState, merge_state

__all__ = [
    "END",
    "CompiledGraph",
    "StateGraph",
    "WorkflowHealth",
    "WorkflowOrchestrator",
    "WorkflowState",
    "merge_state",
]
