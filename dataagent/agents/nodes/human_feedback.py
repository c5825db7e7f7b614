"""
Human feedback node: applies the reviewer's verdict on the plan.

The run pauses before this node; on resume the reviewer's answer arrives in
`human_feedback_approved` / `human_feedback_content`.
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.utils import trace_step


@trace_step("human_feedback")
async def human_feedback_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    if state.get("human_feedback_approved"):
        logger.info("Plan approved by reviewer")
        return {"plan_reviewed": True}

    content = (state.get("human_feedback_content") or "").strip() or "Plan rejected without comment"
    repairs = (state.get("plan_repair_count") or 0) + 1
    logger.info(f"Plan rejected by reviewer (repair {repairs}): {content}")
    update: Dict[str, Any] = {
        "plan_reviewed": False,
        "plan_repair_count": repairs,
        "plan_validation_error": f"Reviewer feedback: {content}",
    }
    if repairs > ctx.settings.max_plan_repair_count:
        update["budget_exhausted"] = "plan_repair"
        update["result"] = f"Plan rejected {repairs} times; stopping. Last feedback: {content}"
    return update
