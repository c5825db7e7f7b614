"""
Pipeline dispatchers.

Each dispatcher is a pure function of the state (and read-only settings)
that names the next node. It reads only the keys its decision depends on.
"""

from typing import Any, Dict

from dataagent.config.settings import Settings
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
    SQL_GENERATE_END,
    SQL_OPTIMIZE,
    TABLE_RELATION,
)
from dataagent.graph.state import END


def route_after_intent(state: Dict[str, Any], settings: Settings) -> str:
    intent = state.get("intent") or {}
    if str(intent.get("classification", "")).strip().lower() == "chitchat":
        return END
    return EVIDENCE_RECALL


def route_after_query_enhance(state: Dict[str, Any], settings: Settings) -> str:
    if not (state.get("canonical_query") or "").strip():
        return END
    return SCHEMA_RECALL


def route_after_table_relation(state: Dict[str, Any], settings: Settings) -> str:
    if state.get("table_relation_exception"):
        retries = state.get("table_relation_retry_count") or 0
        if retries < settings.max_table_relation_retry_count:
            return TABLE_RELATION
        return END
    tables = (state.get("table_relation_output") or {}).get("tables") or []
    if not tables:
        return END
    return FEASIBILITY_ASSESSMENT


def route_after_feasibility(state: Dict[str, Any], settings: Settings) -> str:
    verdict = state.get("feasibility") or {}
    return PLANNER if verdict.get("feasible", True) else END


def route_after_plan_executor(state: Dict[str, Any], settings: Settings) -> str:
    return state.get("plan_next_node") or END


def route_after_human_feedback(state: Dict[str, Any], settings: Settings) -> str:
    if state.get("human_feedback_approved"):
        return PLAN_EXECUTOR
    if state.get("budget_exhausted") == "plan_repair":
        return END
    return PLANNER


def route_after_sql_generate(state: Dict[str, Any], settings: Settings) -> str:
    output = state.get("sql_generate_output") or ""
    if state.get("budget_exhausted") == "sql_generate":
        return END
    if not output.strip():
        count = state.get("sql_generate_count") or 0
        return SQL_GENERATE if count < settings.max_sql_retry_count else END
    if output == SQL_GENERATE_END:
        return END
    if output == SCHEMA_MISSING_SENTINEL:
        return FEASIBILITY_ASSESSMENT
    return SQL_OPTIMIZE


def route_after_sql_optimize(state: Dict[str, Any], settings: Settings) -> str:
    return SEMANTIC_CONSISTENCY if state.get("sql_optimize_finished") else SQL_OPTIMIZE


def route_after_semantic_consistency(state: Dict[str, Any], settings: Settings) -> str:
    verdict = state.get("semantic_consistency_output") or {}
    return SQL_EXECUTE if verdict.get("passed", True) else SQL_GENERATE


def route_after_sql_execute(state: Dict[str, Any], settings: Settings) -> str:
    return SQL_GENERATE if state.get("sql_execute_failed") else PLAN_EXECUTOR


def route_after_python_execute(state: Dict[str, Any], settings: Settings) -> str:
    if state.get("python_execute_success"):
        return PYTHON_ANALYZE
    tries = state.get("python_tries_count") or 0
    return PYTHON_GENERATE if tries < settings.max_python_tries_count else END
