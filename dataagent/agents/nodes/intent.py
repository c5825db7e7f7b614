"""
Intent recognition node
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import INTENT_SYSTEM, INTENT_USER
from dataagent.agents.utils import llm_call, parse_model, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.memory.multi_turn import NO_HISTORY
from dataagent.models.outputs import IntentOutput


@trace_step("intent_recognition")
async def intent_recognition_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    text = await llm_call(
        ctx,
        INTENT_SYSTEM,
        INTENT_USER.format(
            multi_turn_context=state.get("multi_turn_context") or NO_HISTORY,
            question=state.get("input", ""),
        ),
        ContentKind.JSON,
    )
    # Unparsable classification falls through to analysis
    intent = parse_model(text, IntentOutput) or IntentOutput()
    logger.info(f"Intent: {intent.classification}")

    update: Dict[str, Any] = {"intent": intent.model_dump()}
    if intent.is_chitchat:
        update["result"] = intent.reply or "I can help with questions about your data."
    return update
