"""
Tests for graph wiring validation.
"""

from typing import TypedDict

import pytest

from dataagent.agents.workflow import build_data_agent_workflow
from dataagent.graph import GraphDefinition, GraphExecutor
from dataagent.graph.state import END, START
from dataagent.utils.errors import GraphConfigurationError

from fakes import ScriptedLLM, make_context, run_async


class CounterState(TypedDict, total=False):
    thread_id: str
    count: int


def bump(state):
    return {"count": (state.get("count") or 0) + 1}


def linear_graph() -> GraphDefinition:
    g = GraphDefinition(CounterState, name="linear")
    g.add_node("a", bump)
    g.add_node("b", bump)
    g.add_edge(START, "a")
    g.add_edge("a", "b")
    g.add_edge("b", END)
    return g


def test_valid_graph_compiles():
    assert linear_graph().compile() is not None


def test_reserved_and_duplicate_names_are_rejected():
    g = GraphDefinition(CounterState)
    with pytest.raises(GraphConfigurationError):
        g.add_node(END, bump)
    g.add_node("a", bump)
    with pytest.raises(GraphConfigurationError):
        g.add_node("a", bump)


def test_missing_entry_edge_is_rejected():
    g = GraphDefinition(CounterState)
    g.add_node("a", bump)
    g.add_edge("a", END)
    with pytest.raises(GraphConfigurationError, match="entry edge"):
        g.validate()


def test_unknown_edge_target_is_rejected():
    g = GraphDefinition(CounterState)
    g.add_node("a", bump)
    g.add_edge(START, "a")
    g.add_edge("a", "missing")
    with pytest.raises(GraphConfigurationError, match="missing"):
        g.validate()


def test_node_without_outgoing_edge_is_rejected():
    g = GraphDefinition(CounterState)
    g.add_node("a", bump)
    g.add_node("b", bump)
    g.add_edge(START, "a")
    g.add_edge("a", END)
    with pytest.raises(GraphConfigurationError, match="'b' has no outgoing edge"):
        g.validate()


def test_static_and_conditional_edge_on_same_node_is_rejected():
    g = GraphDefinition(CounterState)
    g.add_node("a", bump)
    g.add_edge(START, "a")
    g.add_edge("a", END)
    g.add_conditional_edge("a", lambda s: END, [END])
    with pytest.raises(GraphConfigurationError, match="both a static and a conditional"):
        g.validate()


def test_conditional_edge_needs_known_candidates():
    g = GraphDefinition(CounterState)
    g.add_node("a", bump)
    g.add_edge(START, "a")
    with pytest.raises(GraphConfigurationError):
        g.add_conditional_edge("a", lambda s: END, [])
    g.add_conditional_edge("a", lambda s: END, ["nowhere", END])
    with pytest.raises(GraphConfigurationError, match="nowhere"):
        g.validate()


def test_router_returning_undeclared_target_fails_the_run():
    g = GraphDefinition(CounterState)
    g.add_node("a", bump)
    g.add_edge(START, "a")
    g.add_conditional_edge("a", lambda s: "elsewhere", [END])

    executor = GraphExecutor(g, max_steps=10)
    with pytest.raises(GraphConfigurationError, match="undeclared target 'elsewhere'"):
        run_async(executor.invoke({"count": 0}))


def test_data_agent_workflow_wiring_is_valid():
    g = build_data_agent_workflow(make_context(ScriptedLLM()))
    g.validate()
    assert len(g.nodes) == 17
    assert g.interrupt_nodes == ["human_feedback"]
    assert set(g.conditional_edges["plan_executor"].candidates) == {
        "planner", "sql_generate", "python_generate", "report_generator", "human_feedback", END,
    }
    assert set(g.conditional_edges["sql_generate"].candidates) == {
        "sql_generate", "feasibility_assessment", "sql_optimize", END,
    }
