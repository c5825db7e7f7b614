"""
Plan executor node: validates the plan and dispatches its current step
"""

from typing import Any, Dict, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from dataagent.agents.context import AgentContext
from dataagent.agents.utils import extract_json, trace_step
from dataagent.constants import (
    HUMAN_FEEDBACK,
    PLANNER,
    PYTHON_GENERATE,
    REPORT_GENERATOR,
    SQL_GENERATE,
)
from dataagent.graph.state import END
from dataagent.models.plan import Plan, ToolName

_TOOL_NODES = {
    ToolName.SQL_GENERATE: SQL_GENERATE,
    ToolName.PYTHON_GENERATE: PYTHON_GENERATE,
    ToolName.REPORT: REPORT_GENERATOR,
}


def validate_plan(text: str) -> Tuple[Optional[Plan], Optional[str]]:
    """Parse planner output; returns (plan, None) or (None, reason)"""
    data = extract_json(text or "")
    if not isinstance(data, dict):
        return None, "Plan is not a JSON object"
    try:
        plan = Plan.model_validate(data)
    except ValidationError as e:
        return None, f"Plan does not match the expected structure: {e.errors()[0].get('msg')}"
    if not plan.execution_plan:
        return None, "Plan has no steps"
    numbers = [s.step for s in plan.execution_plan]
    if numbers != list(range(1, len(numbers) + 1)):
        return None, f"Steps must be numbered 1..n in order, got {numbers}"
    for step in plan.execution_plan:
        if step.tool_to_use == ToolName.SQL_GENERATE and not step.tool_parameters.description.strip():
            return None, f"Step {step.step} uses SQL_GENERATE without a description"
    return plan, None


@trace_step("plan_executor")
async def plan_executor_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    plan, error = validate_plan(state.get("plan_output", ""))
    if plan is None:
        repairs = (state.get("plan_repair_count") or 0) + 1
        logger.warning(f"Invalid plan (repair {repairs}): {error}")
        update: Dict[str, Any] = {
            "plan_validation_error": error,
            "plan_repair_count": repairs,
            "plan_next_node": PLANNER,
        }
        if repairs > ctx.settings.max_plan_repair_count:
            update["plan_next_node"] = END
            update["budget_exhausted"] = "plan_repair"
            update["result"] = f"Could not produce a valid plan: {error}"
        return update

    update = {"plan": plan.model_dump(mode="json"), "plan_validation_error": None}

    review = state.get("human_review_enabled", ctx.settings.human_review_enabled)
    if review and not state.get("nl2sql_only") and not state.get("plan_reviewed"):
        update["plan_next_node"] = HUMAN_FEEDBACK
        return update

    number = state.get("plan_current_step") or 1
    step = plan.step_at(number)
    if step is None:
        update["plan_next_node"] = END if state.get("nl2sql_only") else REPORT_GENERATOR
        logger.info(f"Plan finished after {len(plan.execution_plan)} steps -> {update['plan_next_node']}")
        return update

    node = _TOOL_NODES[step.tool_to_use]
    update["plan_next_node"] = node
    if node == SQL_GENERATE and state.get("sql_generate_step") != number:
        # New SQL step: budgets start over. Re-entry after a re-plan keeps them
        update.update({
            "sql_generate_count": 0,
            "sql_retry": {},
            "sql_generate_output": "",
            "sql_generate_step": number,
        })
    elif node == PYTHON_GENERATE:
        update.update({"python_tries_count": 0, "python_execute_output": "", "python_code": ""})
    logger.info(f"Executing step {number}/{len(plan.execution_plan)}: {step.tool_to_use.value}")
    return update
