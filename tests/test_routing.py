"""
Tests for the pipeline dispatchers and plan validation.
"""

import pytest

from dataagent.agents import routing
from dataagent.agents.nodes.plan_executor import validate_plan
from dataagent.constants import (
    EVIDENCE_RECALL,
    FEASIBILITY_ASSESSMENT,
    PLAN_EXECUTOR,
    PLANNER,
    PYTHON_ANALYZE,
    PYTHON_GENERATE,
    SCHEMA_MISSING_SENTINEL,
    SCHEMA_RECALL,
    SEMANTIC_CONSISTENCY,
    SQL_EXECUTE,
    SQL_GENERATE,
    SQL_OPTIMIZE,
    TABLE_RELATION,
)
from dataagent.graph.state import END

from fakes import SQL_PLAN, make_settings


@pytest.fixture
def limits():
    return make_settings(
        max_sql_retry_count=3,
        max_table_relation_retry_count=2,
        max_python_tries_count=2,
    )


def test_chitchat_ends_the_run(limits):
    assert routing.route_after_intent({"intent": {"classification": "chitchat"}}, limits) == END
    assert routing.route_after_intent({"intent": {"classification": "data_analysis"}}, limits) == EVIDENCE_RECALL
    assert routing.route_after_intent({}, limits) == EVIDENCE_RECALL


def test_empty_canonical_query_ends_the_run(limits):
    assert routing.route_after_query_enhance({"canonical_query": "  "}, limits) == END
    assert routing.route_after_query_enhance({"canonical_query": "orders per day"}, limits) == SCHEMA_RECALL


def test_table_relation_retries_within_budget(limits):
    failed = {"table_relation_exception": "timeout"}
    assert routing.route_after_table_relation({**failed, "table_relation_retry_count": 1}, limits) == TABLE_RELATION
    assert routing.route_after_table_relation({**failed, "table_relation_retry_count": 2}, limits) == END
    ok = {"table_relation_output": {"tables": ["orders"]}}
    assert routing.route_after_table_relation(ok, limits) == FEASIBILITY_ASSESSMENT
    assert routing.route_after_table_relation({"table_relation_output": {"tables": []}}, limits) == END


def test_feasibility_gate(limits):
    assert routing.route_after_feasibility({"feasibility": {"feasible": False}}, limits) == END
    assert routing.route_after_feasibility({"feasibility": {"feasible": True}}, limits) == PLANNER


def test_plan_executor_follows_its_decision(limits):
    assert routing.route_after_plan_executor({"plan_next_node": SQL_GENERATE}, limits) == SQL_GENERATE
    assert routing.route_after_plan_executor({}, limits) == END


def test_human_feedback_routing(limits):
    assert routing.route_after_human_feedback({"human_feedback_approved": True}, limits) == PLAN_EXECUTOR
    assert routing.route_after_human_feedback({"human_feedback_approved": False}, limits) == PLANNER
    exhausted = {"human_feedback_approved": False, "budget_exhausted": "plan_repair"}
    assert routing.route_after_human_feedback(exhausted, limits) == END


def test_schema_missing_sentinel_goes_back_to_feasibility(limits):
    state = {"sql_generate_output": SCHEMA_MISSING_SENTINEL, "sql_generate_count": 1}
    assert routing.route_after_sql_generate(state, limits) == FEASIBILITY_ASSESSMENT


def test_sql_branch_routing(limits):
    assert routing.route_after_sql_optimize({"sql_optimize_finished": False}, limits) == SQL_OPTIMIZE
    assert routing.route_after_sql_optimize({"sql_optimize_finished": True}, limits) == SEMANTIC_CONSISTENCY
    failed = {"semantic_consistency_output": {"passed": False}}
    assert routing.route_after_semantic_consistency(failed, limits) == SQL_GENERATE
    assert routing.route_after_semantic_consistency({}, limits) == SQL_EXECUTE
    assert routing.route_after_sql_execute({"sql_execute_failed": True}, limits) == SQL_GENERATE
    assert routing.route_after_sql_execute({"sql_execute_failed": False}, limits) == PLAN_EXECUTOR


def test_python_retry_budget(limits):
    assert routing.route_after_python_execute({"python_execute_success": True}, limits) == PYTHON_ANALYZE
    failed = {"python_execute_success": False}
    assert routing.route_after_python_execute({**failed, "python_tries_count": 1}, limits) == PYTHON_GENERATE
    assert routing.route_after_python_execute({**failed, "python_tries_count": 2}, limits) == END


def test_valid_plan_parses():
    plan, error = validate_plan(f"Here is the plan:\n```json\n{SQL_PLAN}\n```")
    assert error is None
    assert [s.tool_to_use.value for s in plan.execution_plan] == ["SQL_GENERATE", "REPORT"]


@pytest.mark.parametrize("text, reason", [
    ("not json at all", "not a JSON object"),
    ('{"thought_process": "x", "execution_plan": []}', "no steps"),
    ('{"execution_plan": [{"step": 2, "tool_to_use": "REPORT"}]}', "numbered 1..n"),
    ('{"execution_plan": [{"step": 1, "tool_to_use": "SQL_GENERATE"}]}', "without a description"),
    ('{"execution_plan": [{"step": 1, "tool_to_use": "SEND_EMAIL"}]}', "expected structure"),
])
def test_invalid_plans_are_rejected_with_reason(text, reason):
    plan, error = validate_plan(text)
    assert plan is None
    assert reason in error


def test_tool_names_are_case_insensitive():
    plan, error = validate_plan(
        '{"execution_plan": [{"step": 1, "tool_to_use": "python_generate", '
        '"tool_parameters": {"description": "trend"}}]}'
    )
    assert error is None
    assert plan.execution_plan[0].tool_to_use.value == "PYTHON_GENERATE"
