"""
Planner node: streams the execution plan as JSON
"""

import json
from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import PLANNER_REPAIR, PLANNER_SYSTEM, PLANNER_USER
from dataagent.agents.utils import llm_call, question_of, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.memory.multi_turn import NO_HISTORY
from dataagent.models.plan import Plan
from dataagent.models.schema import SchemaDTO


@trace_step("planner")
async def planner_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    fresh = {
        "plan_current_step": 1,
        "plan_reviewed": False,
        "sql_execute_results": {},
        "python_analysis": {},
    }

    if state.get("nl2sql_only"):
        plan = Plan.single_sql_step(question_of(state))
        return {**fresh, "plan_output": plan.model_dump_json()}

    repair = ""
    if state.get("plan_validation_error"):
        repair = PLANNER_REPAIR.format(
            reason=state["plan_validation_error"],
            previous=state.get("plan_output") or "(none)",
        )

    schema = SchemaDTO.model_validate(state.get("schema") or {})
    text = await llm_call(
        ctx,
        PLANNER_SYSTEM,
        PLANNER_USER.format(
            schema=schema.render(),
            evidence=state.get("evidence") or "(none)",
            multi_turn_context=state.get("multi_turn_context") or NO_HISTORY,
            question=question_of(state),
            repair=repair,
        ),
        ContentKind.JSON,
    )
    logger.info(f"Planner produced {len(text)} chars")
    return {**fresh, "plan_output": text}
