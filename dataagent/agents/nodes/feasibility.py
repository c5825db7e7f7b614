"""
Feasibility assessment node
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import FEASIBILITY_SYSTEM, FEASIBILITY_USER
from dataagent.agents.utils import llm_call, parse_model, question_of, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.models.outputs import FeasibilityOutput
from dataagent.models.schema import SchemaDTO


@trace_step("feasibility_assessment")
async def feasibility_assessment_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    schema = SchemaDTO.model_validate(state.get("schema") or {})
    text = await llm_call(
        ctx,
        FEASIBILITY_SYSTEM,
        FEASIBILITY_USER.format(
            schema=schema.render(),
            evidence=state.get("evidence") or "(none)",
            question=question_of(state),
        ),
        ContentKind.JSON,
    )
    verdict = parse_model(text, FeasibilityOutput) or FeasibilityOutput()
    logger.info(f"Feasible: {verdict.feasible} ({verdict.reason})")

    update: Dict[str, Any] = {"feasibility": verdict.model_dump()}
    if not verdict.feasible:
        update["result"] = verdict.reason or "The question cannot be answered with the available data."
    return update
