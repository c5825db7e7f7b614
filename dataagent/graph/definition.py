"""
Graph definition builder.

Nodes and edges are registered explicitly and validated when the graph is
compiled. The compiled artifact is a LangGraph StateGraph; conditional edges
are wrapped so a router returning a target outside its declared candidates
fails loudly instead of silently misrouting.
"""

import functools
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from langgraph.config import get_stream_writer
from langgraph.graph import StateGraph
from langgraph.types import interrupt
from loguru import logger

from dataagent.graph.fragments import ContentKind, FragmentSink, bind_sink, unbind_sink
from dataagent.graph.state import WorkflowState, START, END
from dataagent.utils.errors import GraphConfigurationError

_RESERVED = {START, END}


@dataclass
class NodeSpec:
    name: str
    fn: Callable
    interrupt_before: bool = False
    content_kind: ContentKind = ContentKind.TEXT


@dataclass
class ConditionalEdge:
    source: str
    router: Callable[[Dict[str, Any]], str]
    candidates: Tuple[str, ...]


class GraphDefinition:
    """
    Node + edge registry.

    Example:
        g = GraphDefinition()
        g.add_node("a", node_a)
        g.add_node("b", node_b, interrupt_before=True)
        g.add_edge(START, "a")
        g.add_conditional_edge("a", route_after_a, ["b", END])
        g.add_edge("b", END)
        compiled = g.compile(checkpointer)
    """

    def __init__(self, state_schema: type = WorkflowState, name: str = "workflow"):
        self.state_schema = state_schema
        self.name = name
        self.nodes: Dict[str, NodeSpec] = {}
        self.edges: List[Tuple[str, str]] = []
        self.conditional_edges: Dict[str, ConditionalEdge] = {}

    def add_node(
        self,
        name: str,
        fn: Callable,
        interrupt_before: bool = False,
        content_kind: ContentKind = ContentKind.TEXT,
    ) -> "GraphDefinition":
        if name in _RESERVED:
            raise GraphConfigurationError(f"'{name}' is a reserved node name")
        if name in self.nodes:
            raise GraphConfigurationError(f"Node '{name}' is already registered")
        self.nodes[name] = NodeSpec(name, fn, interrupt_before, content_kind)
        return self

    def add_edge(self, source: str, target: str) -> "GraphDefinition":
        self.edges.append((source, target))
        return self

    def add_conditional_edge(
        self,
        source: str,
        router: Callable[[Dict[str, Any]], str],
        candidates: Iterable[str],
    ) -> "GraphDefinition":
        if source in self.conditional_edges:
            raise GraphConfigurationError(f"Node '{source}' already has a conditional edge")
        candidates = tuple(dict.fromkeys(candidates))
        if not candidates:
            raise GraphConfigurationError(f"Conditional edge from '{source}' declares no candidates")
        self.conditional_edges[source] = ConditionalEdge(source, router, candidates)
        return self

    @property
    def interrupt_nodes(self) -> List[str]:
        return [n.name for n in self.nodes.values() if n.interrupt_before]

    def validate(self) -> None:
        """Check wiring; raises GraphConfigurationError on the first problem"""
        known = set(self.nodes)

        entries = [t for s, t in self.edges if s == START]
        if len(entries) != 1:
            raise GraphConfigurationError(f"Graph '{self.name}' needs exactly one entry edge, found {len(entries)}")

        static_sources = set()
        for source, target in self.edges:
            if source != START and source not in known:
                raise GraphConfigurationError(f"Edge source '{source}' is not a registered node")
            if target != END and target not in known:
                raise GraphConfigurationError(f"Edge target '{target}' is not a registered node")
            if source in static_sources:
                raise GraphConfigurationError(f"Node '{source}' has more than one static edge")
            static_sources.add(source)

        for edge in self.conditional_edges.values():
            if edge.source not in known:
                raise GraphConfigurationError(f"Conditional edge source '{edge.source}' is not a registered node")
            if edge.source in static_sources:
                raise GraphConfigurationError(f"Node '{edge.source}' has both a static and a conditional edge")
            for candidate in edge.candidates:
                if candidate != END and candidate not in known:
                    raise GraphConfigurationError(
                        f"Conditional edge from '{edge.source}' declares unknown target '{candidate}'"
                    )

        for name in known:
            if name not in static_sources and name not in self.conditional_edges:
                raise GraphConfigurationError(f"Node '{name}' has no outgoing edge")

    def compile(self, checkpointer: Optional[Any] = None):
        """Validate and build the executable LangGraph graph"""
        self.validate()

        g = StateGraph(self.state_schema)
        for spec in self.nodes.values():
            g.add_node(spec.name, _wrap_node(spec))

        for source, target in self.edges:
            g.add_edge(source, target)

        for edge in self.conditional_edges.values():
            g.add_conditional_edges(
                edge.source,
                _guard_router(edge),
                {candidate: candidate for candidate in edge.candidates},
            )

        compiled = g.compile(checkpointer=checkpointer)
        logger.info(
            f"Compiled graph '{self.name}': {len(self.nodes)} nodes, "
            f"{len(self.edges) + len(self.conditional_edges)} edges, interrupt_before={self.interrupt_nodes}"
        )
        return compiled


def _guard_router(edge: ConditionalEdge) -> Callable[[Dict[str, Any]], str]:
    @functools.wraps(edge.router)
    def route(state: Dict[str, Any]) -> str:
        target = edge.router(state)
        if target not in edge.candidates:
            raise GraphConfigurationError(
                f"Router for '{edge.source}' returned undeclared target '{target}' "
                f"(declared: {list(edge.candidates)})"
            )
        logger.debug(f"[ROUTE] {edge.source} -> {target}")
        return target

    return route


def _wrap_node(spec: NodeSpec) -> Callable:
    async def run(state: Dict[str, Any]) -> Dict[str, Any]:
        feedback: Dict[str, Any] = {}
        if spec.interrupt_before:
            # First pass suspends here; on resume interrupt() returns the feedback
            feedback = interrupt({"node": spec.name}) or {}
            state = {**state, **feedback}

        token = bind_sink(FragmentSink(spec.name, spec.content_kind, get_stream_writer()))
        try:
            update = spec.fn(state)
            if inspect.isawaitable(update):
                update = await update
        finally:
            unbind_sink(token)
        return {**feedback, **(update or {})}

    run.__name__ = spec.name
    return run
