"""
Evidence recall node: business knowledge snippets relevant to the question
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import EVIDENCE_REWRITE_SYSTEM, EVIDENCE_REWRITE_USER
from dataagent.agents.utils import llm_call, run_blocking, trace_step
from dataagent.infra.knowledge import KIND_EVIDENCE
from dataagent.memory.multi_turn import NO_HISTORY


@trace_step("evidence_recall")
async def evidence_recall_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    question = state.get("input", "")
    history = state.get("multi_turn_context") or NO_HISTORY

    query = question
    if history != NO_HISTORY:
        # Follow-up questions need earlier turns resolved before searching
        rewritten = await llm_call(
            ctx,
            EVIDENCE_REWRITE_SYSTEM,
            EVIDENCE_REWRITE_USER.format(multi_turn_context=history, question=question),
        )
        query = rewritten.strip() or question

    docs = await run_blocking(
        ctx.knowledge.similarity_search,
        query,
        {"agent_id": state.get("agent_id", ""), "kind": KIND_EVIDENCE},
        ctx.settings.evidence_top_k,
        ctx.settings.similarity_threshold,
    )
    evidence = "\n".join(f"- {d.content}" for d in docs)
    logger.info(f"Recalled {len(docs)} evidence snippets")
    return {"evidence": evidence}
