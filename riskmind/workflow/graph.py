"""Minimal directed state graph: nodes, static edges and conditional routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

from riskmind.workflow.state import StateUpdate, WorkflowState, merge_state

END = "__end__"

Node = Callable[[WorkflowState], Awaitable[StateUpdate | None]]
Router = Callable[[WorkflowState], str]


@dataclass(frozen=True)
class ConditionalEdge:
    router: Router
    targets: dict[str, str]


class StateGraph:
    """Builder for an acyclic node graph over ``WorkflowState``."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, str] = {}
        self._conditional: dict[str, ConditionalEdge] = {}
        self._entry: str | None = None

    def add_node(self, name: str, node: Node) -> None:
        if name in self._nodes or name == END:
            raise ValueError(f"Node already defined: {name}")
        self._nodes[name] = node

    def add_edge(self, source: str, target: str) -> None:
        if source in self._edges or source in self._conditional:
            raise ValueError(f"Node {source} already has an outgoing edge")
        self._edges[source] = target

    def add_conditional_edges(self, source: str, router: Router, targets: dict[str, str]) -> None:
        if source in self._edges or source in self._conditional:
            raise ValueError(f"Node {source} already has an outgoing edge")
        self._conditional[source] = ConditionalEdge(router, dict(targets))

    def set_entry_point(self, name: str) -> None:
        self._entry = name

    def compile(self) -> "CompiledGraph":
        if self._entry is None:
            raise ValueError("Graph has no entry point")
        for name in (self._entry, *self._successors()):
            if name != END and name not in self._nodes:
                raise ValueError(f"Edge points at unknown node: {name}")
        for name in self._nodes:
            if name not in self._edges and name not in self._conditional:
                raise ValueError(f"Node {name} has no outgoing edge")
        self._check_acyclic()
        return CompiledGraph(self._entry, dict(self._nodes), dict(self._edges), dict(self._conditional))

    def _successors(self) -> list[str]:
        targets = list(self._edges.values())
        for edge in self._conditional.values():
            targets.extend(edge.targets.values())
        return targets

    def _next_nodes(self, name: str) -> list[str]:
        if name in self._edges:
            return [self._edges[name]]
        if name in self._conditional:
            return list(self._conditional[name].targets.values())
        return []

    def _check_acyclic(self) -> None:
        visiting: set[str] = set()
        done: set[str] = set()

        def visit(name: str) -> None:
            if name == END or name in done:
                return
            if name in visiting:
                raise ValueError(f"Graph contains a cycle through {name}")
            visiting.add(name)
            for target in self._next_nodes(name):
                visit(target)
            visiting.discard(name)
            done.add(name)

        for name in self._nodes:
            visit(name)


class CompiledGraph:
    """Walk the graph from the entry point, merging each node's update."""

    def __init__(
        self,
        entry: str,
        nodes: dict[str, Node],
        edges: dict[str, str],
        conditional: dict[str, ConditionalEdge],
    ) -> None:
        self.entry = entry
        self.nodes = nodes
        self.edges = edges
        self.conditional = conditional
        self._log = structlog.get_logger(__name__)

    async def invoke(self, state: WorkflowState) -> WorkflowState:
        current = self.entry
        while current != END:
            update = await self.nodes[current](state)
            state = merge_state(state, update)
            current = self._route(current, state)
        return state

    def _route(self, name: str, state: WorkflowState) -> str:
        if name in self.edges:
            return self.edges[name]
        edge = self.conditional[name]
        key = edge.router(state)
        if key not in edge.targets:
            raise KeyError(f"Router for {name} returned unknown branch: {key}")
        self._log.debug("workflow_branch", source=name, branch=key)
        return edge.targets[key]
