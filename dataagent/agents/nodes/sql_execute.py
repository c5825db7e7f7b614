"""
SQL execution node
"""

import json
from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.utils import trace_step
from dataagent.graph.fragments import ContentKind, emit
from dataagent.models.outputs import SqlRetry
from dataagent.utils.errors import SchemaAccessError, TransientToolError

_PREVIEW_ROWS = 5


def _advance(state: Dict[str, Any], sql: str, results: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "sql_execute_results": results,
        "sql_execute_failed": False,
        "final_sql": sql,
        "plan_current_step": (state.get("plan_current_step") or 1) + 1,
    }


@trace_step("sql_execute")
async def sql_execute_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    sql = state.get("sql_optimize_output") or state.get("sql_generate_output") or ""
    step = str(state.get("plan_current_step") or 1)
    results = dict(state.get("sql_execute_results") or {})

    if state.get("nl2sql_only"):
        # SQL-only callers get the query, not its rows
        results[step] = {"sql": sql, "columns": [], "rows": []}
        return _advance(state, sql, results)

    agent_id = state.get("agent_id", "")
    ds = ctx.datasources.resolve(agent_id)
    if ds is None:
        raise SchemaAccessError(f"No datasource configured for agent '{agent_id}'")

    try:
        result = await ctx.sql_executor.execute(ds, sql)
    except TransientToolError as e:
        logger.warning(f"SQL execution failed, regenerating: {e}")
        return {
            "sql_execute_failed": True,
            "sql_retry": SqlRetry.execution(str(e)).model_dump(),
        }

    emit(
        json.dumps({"columns": result.columns, "rows": result.rows[:_PREVIEW_ROWS], "row_count": result.row_count},
                   default=str),
        ContentKind.JSON,
    )
    results[step] = result.model_dump()
    logger.info(f"Step {step} SQL returned {result.row_count} rows")
    return _advance(state, sql, results)
