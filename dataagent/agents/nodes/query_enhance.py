"""
Query enhancement node: canonical question plus retrieval phrasings
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import QUERY_ENHANCE_SYSTEM, QUERY_ENHANCE_USER
from dataagent.agents.utils import llm_call, parse_model, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.memory.multi_turn import NO_HISTORY
from dataagent.models.outputs import QueryEnhanceOutput


@trace_step("query_enhance")
async def query_enhance_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    text = await llm_call(
        ctx,
        QUERY_ENHANCE_SYSTEM,
        QUERY_ENHANCE_USER.format(
            evidence=state.get("evidence") or "(none)",
            multi_turn_context=state.get("multi_turn_context") or NO_HISTORY,
            question=state.get("input", ""),
        ),
        ContentKind.JSON,
    )
    enhanced = parse_model(text, QueryEnhanceOutput) or QueryEnhanceOutput()
    canonical = enhanced.canonical_query.strip()
    logger.info(f"Canonical query: {canonical!r} (+{len(enhanced.expanded_queries)} expansions)")

    update: Dict[str, Any] = {
        "canonical_query": canonical,
        "expanded_queries": [q for q in enhanced.expanded_queries if q and q.strip()],
    }
    if not canonical:
        update["result"] = "The question could not be turned into a data query. Please rephrase it."
    return update
