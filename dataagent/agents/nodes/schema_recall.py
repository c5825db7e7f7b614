"""
Schema recall node: similarity search over table and column documents
"""

from typing import Any, Dict, List

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.utils import run_blocking, trace_step
from dataagent.infra.knowledge import Document, KIND_COLUMN, KIND_TABLE
from dataagent.schema.source import schema_from_documents


async def _search(ctx: AgentContext, queries: List[str], agent_id: str, kind: str) -> List[Document]:
    seen: Dict[str, Document] = {}
    for query in queries:
        docs = await run_blocking(
            ctx.knowledge.similarity_search,
            query,
            {"agent_id": agent_id, "kind": kind},
            ctx.settings.top_k,
            ctx.settings.similarity_threshold,
        )
        for doc in docs:
            if doc.id not in seen or doc.similarity > seen[doc.id].similarity:
                seen[doc.id] = doc
    return sorted(seen.values(), key=lambda d: d.similarity, reverse=True)[: ctx.settings.top_k]


@trace_step("schema_recall")
async def schema_recall_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    agent_id = state.get("agent_id", "")
    queries = [state.get("canonical_query") or state.get("input", "")]
    queries += [q for q in state.get("expanded_queries") or [] if q not in queries]

    tables = await _search(ctx, queries, agent_id, KIND_TABLE)
    columns = await _search(ctx, queries, agent_id, KIND_COLUMN)

    ds = ctx.datasources.resolve(agent_id)
    schema = schema_from_documents(tables, columns, database_name=ds.name if ds else "")
    logger.info(f"Recalled {len(schema.tables)} tables, {len(columns)} columns for agent {agent_id}")
    return {"schema": schema.model_dump()}
