"""
Table relation node: foreign-key closure and fine table selection
"""

import asyncio
from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import TABLE_SELECT_SYSTEM, TABLE_SELECT_USER
from dataagent.agents.utils import extract_json, llm_call, question_of, run_blocking, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.models.schema import SchemaDTO
from dataagent.utils.errors import TransientToolError


async def _fine_select(state: Dict[str, Any], ctx: AgentContext, schema: SchemaDTO) -> SchemaDTO:
    """Let the model narrow the closed schema to the tables it needs"""
    if len(schema.tables) <= 1:
        return schema
    text = await llm_call(
        ctx,
        TABLE_SELECT_SYSTEM,
        TABLE_SELECT_USER.format(
            schema=schema.render(),
            evidence=state.get("evidence") or "(none)",
            question=question_of(state),
        ),
        ContentKind.JSON,
    )
    data = extract_json(text) or {}
    chosen = [n for n in data.get("tables", []) if isinstance(n, str)] if isinstance(data, dict) else []
    keep = [t for t in schema.tables if t.name in chosen]
    if not keep:
        logger.warning("Table selection returned no known tables, keeping the full closed schema")
        return schema
    narrowed = schema.model_copy(deep=True)
    narrowed.tables = [t.model_copy(deep=True) for t in keep]
    logger.info(f"Fine selection kept {len(keep)}/{len(schema.tables)} tables: {[t.name for t in keep]}")
    return narrowed


@trace_step("table_relation")
async def table_relation_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    agent_id = state.get("agent_id", "")
    recalled = SchemaDTO.model_validate(state.get("schema") or {})
    relations = await run_blocking(ctx.datasources.logical_relations, agent_id)

    try:
        closed = await run_blocking(ctx.closure_builder.close, agent_id, recalled, relations)
        selected = await _fine_select(state, ctx, closed)
        # Narrowing can drop join partners; close again so the result stays closed
        final = await run_blocking(ctx.closure_builder.close, agent_id, selected, relations)
    except (TransientToolError, asyncio.TimeoutError) as e:
        retries = (state.get("table_relation_retry_count") or 0) + 1
        logger.warning(f"Table relation failed (attempt {retries}): {e}")
        update: Dict[str, Any] = {
            "table_relation_exception": str(e) or type(e).__name__,
            "table_relation_retry_count": retries,
        }
        if retries >= ctx.settings.max_table_relation_retry_count:
            update["budget_exhausted"] = "table_relation"
            update["result"] = f"Schema enrichment failed after {retries} attempts: {e}"
        return update

    update = {
        "schema": final.model_dump(),
        "table_relation_output": {"tables": final.table_names, "foreign_keys": final.foreign_keys},
        "table_relation_exception": None,
        "table_relation_retry_count": 0,
    }
    if not final.tables:
        update["result"] = "No tables relevant to the question were found."
    return update
