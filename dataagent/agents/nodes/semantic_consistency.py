"""
Semantic consistency node: does the SQL answer the step that was asked?
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import SEMANTIC_CHECK_SYSTEM, SEMANTIC_CHECK_USER
from dataagent.agents.utils import llm_call, parse_model, question_of, step_description, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.models.outputs import SemanticCheckOutput, SqlRetry
from dataagent.models.schema import SchemaDTO

_FAIL_PREFIX = "FAIL"


@trace_step("semantic_consistency")
async def semantic_consistency_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    sql = state.get("sql_optimize_output") or state.get("sql_generate_output") or ""
    schema = SchemaDTO.model_validate(state.get("schema") or {})
    text = await llm_call(
        ctx,
        SEMANTIC_CHECK_SYSTEM,
        SEMANTIC_CHECK_USER.format(
            schema=schema.render(),
            evidence=state.get("evidence") or "(none)",
            question=question_of(state),
            step=step_description(state),
            sql=sql,
        ),
        ContentKind.JSON,
    )

    verdict = parse_model(text, SemanticCheckOutput)
    if verdict is None:
        # Free-text verdicts only fail on an explicit marker
        failed = text.strip().upper().startswith(_FAIL_PREFIX)
        verdict = SemanticCheckOutput(passed=not failed, reason=text.strip() if failed else "")

    update: Dict[str, Any] = {"semantic_consistency_output": verdict.model_dump()}
    if not verdict.passed:
        logger.info(f"Semantic check failed: {verdict.reason}")
        update["sql_retry"] = SqlRetry.semantic(verdict.reason or "SQL does not match the question").model_dump()
    return update
