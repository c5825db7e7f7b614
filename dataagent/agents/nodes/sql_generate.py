"""
SQL generation node
"""

from typing import Any, Dict, List, Tuple

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import (
    SCHEMA_ADVICE_SYSTEM,
    SCHEMA_ADVICE_USER,
    SQL_GENERATE_SYSTEM,
    SQL_GENERATE_USER,
    SQL_RETRY,
)
from dataagent.agents.utils import (
    extract_json,
    llm_call,
    question_of,
    run_blocking,
    step_description,
    trace_step,
)
from dataagent.constants import SCHEMA_MISSING_MARKER, SCHEMA_MISSING_SENTINEL, SQL_GENERATE_END
from dataagent.graph.fragments import ContentKind
from dataagent.infra.knowledge import KIND_TABLE
from dataagent.memory.multi_turn import NO_HISTORY
from dataagent.models.outputs import SqlRetry
from dataagent.models.schema import SchemaDTO
from dataagent.sql.analysis import extract_sql


def _exhausted(attempts: int) -> Dict[str, Any]:
    return {
        "budget_exhausted": "sql_generate",
        "result": f"Could not produce a working SQL query after {attempts} attempts.",
    }


def _schema_missing(text: str) -> Tuple[bool, str]:
    stripped = text.strip()
    if stripped.upper().startswith(SCHEMA_MISSING_MARKER):
        return True, stripped[len(SCHEMA_MISSING_MARKER):].strip()
    return False, ""


async def _advise_tables(state: Dict[str, Any], ctx: AgentContext, schema: SchemaDTO, missing: str) -> List[str]:
    """Ask the model which known-but-unrecalled tables would fill the gap"""
    agent_id = state.get("agent_id", "")
    docs = await run_blocking(ctx.knowledge.find, {"agent_id": agent_id, "kind": KIND_TABLE})
    current = set(schema.table_names)
    available = [d for d in docs if d.metadata.get("name") and d.metadata["name"] not in current]
    if not available:
        return []
    text = await llm_call(
        ctx,
        SCHEMA_ADVICE_SYSTEM,
        SCHEMA_ADVICE_USER.format(
            missing=missing or "(unspecified)",
            current=", ".join(sorted(current)) or "(none)",
            available="\n".join(
                f"- {d.metadata['name']}: {d.metadata.get('description', '')}" for d in available
            ),
            question=question_of(state),
        ),
        ContentKind.JSON,
    )
    data = extract_json(text)
    if not isinstance(data, dict):
        return []
    return [n for n in data.get("tables", []) if isinstance(n, str)]


@trace_step("sql_generate")
async def sql_generate_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    max_tries = ctx.settings.max_sql_retry_count
    count = state.get("sql_generate_count") or 0
    if count >= max_tries:
        logger.warning(f"SQL generation budget exhausted ({count}/{max_tries})")
        return {"sql_generate_output": SQL_GENERATE_END, **_exhausted(count)}

    attempt = count + 1
    schema = SchemaDTO.model_validate(state.get("schema") or {})
    retry = SqlRetry.model_validate(state.get("sql_retry") or {})
    retry_text = ""
    if retry.active:
        retry_text = SQL_RETRY.format(
            sql=state.get("sql_optimize_output") or state.get("sql_generate_output") or "(none)",
            reason=retry.reason,
        )

    ds = ctx.datasources.resolve(state.get("agent_id", ""))
    text = await llm_call(
        ctx,
        SQL_GENERATE_SYSTEM.format(dialect=ds.dialect if ds else "ANSI"),
        SQL_GENERATE_USER.format(
            schema=schema.render(),
            evidence=state.get("evidence") or "(none)",
            multi_turn_context=state.get("multi_turn_context") or NO_HISTORY,
            question=question_of(state),
            step=step_description(state),
            retry=retry_text,
        ),
        ContentKind.SQL,
    )

    missing, what = _schema_missing(text)
    if missing:
        logger.info(f"SQL generation reports missing schema: {what}")
        agent_id = state.get("agent_id", "")
        suggested = await _advise_tables(state, ctx, schema, what)
        relations = await run_blocking(ctx.datasources.logical_relations, agent_id)
        expanded, added = await run_blocking(ctx.closure_builder.supplement, agent_id, schema, suggested, relations)
        if added:
            # Retry generation against the widened schema
            widened: Dict[str, Any] = {
                "schema": expanded.model_dump(),
                "sql_generate_output": "",
                "sql_generate_count": attempt,
                "sql_retry": {},
            }
            if attempt >= max_tries:
                widened.update(_exhausted(attempt))
            return widened
        update: Dict[str, Any] = {"sql_generate_output": SCHEMA_MISSING_SENTINEL, "sql_generate_count": attempt}
        if attempt >= max_tries:
            update.update(_exhausted(attempt))
        return update

    sql = extract_sql(text)
    update = {
        "sql_generate_output": sql,
        "sql_generate_count": attempt,
        "sql_retry": {},
        # New candidate restarts refinement
        "sql_optimize_count": 0,
        "sql_optimize_best_sql": sql,
        "sql_optimize_best_score": 0.0,
        "sql_optimize_finished": False,
        "sql_optimize_output": "",
    }
    if not sql:
        logger.warning(f"SQL generation attempt {attempt}/{max_tries} produced no SQL")
        if attempt >= max_tries:
            update.update(_exhausted(attempt))
    return update
