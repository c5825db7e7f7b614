"""
SQL optimization node: score-driven refinement of the generated SQL.

Each round asks the model for an improved candidate, scores it
deterministically and keeps the best candidate seen so far. The loop ends
when a candidate beats the acceptance threshold or the round budget is used
up; in the latter case the best-so-far SQL is accepted as is.
"""

from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import SQL_OPTIMIZE_SYSTEM, SQL_OPTIMIZE_USER
from dataagent.agents.utils import llm_call, question_of, trace_step
from dataagent.graph.fragments import ContentKind
from dataagent.models.schema import SchemaDTO
from dataagent.sql.analysis import extract_sql
from dataagent.sql.scoring import normalize_sql


def _accept(best_sql: str, best_score: float, threshold: float) -> Dict[str, Any]:
    below = best_score <= threshold
    if below:
        logger.info(f"Accepting best-so-far SQL below threshold (score {best_score:.3f} <= {threshold})")
    return {
        "sql_optimize_finished": True,
        "sql_optimize_output": normalize_sql(best_sql),
        "sql_optimize_below_threshold": below,
    }


@trace_step("sql_optimize")
async def sql_optimize_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    max_rounds = ctx.settings.max_sql_optimize_count
    threshold = ctx.settings.sql_score_threshold
    rounds = state.get("sql_optimize_count") or 0
    best_sql = state.get("sql_optimize_best_sql") or state.get("sql_generate_output") or ""
    best_score = state.get("sql_optimize_best_score") or 0.0

    if rounds >= max_rounds:
        return _accept(best_sql, best_score, threshold)

    schema = SchemaDTO.model_validate(state.get("schema") or {})
    text = await llm_call(
        ctx,
        SQL_OPTIMIZE_SYSTEM,
        SQL_OPTIMIZE_USER.format(
            schema=schema.render(),
            question=question_of(state),
            score=best_score,
            sql=best_sql,
        ),
        ContentKind.SQL,
    )
    candidate = extract_sql(text)
    score = ctx.scorer(candidate)
    rounds += 1
    logger.info(
        f"Optimize round {rounds}/{max_rounds}: total={score.total:.3f} "
        f"(syntax={score.syntax:.2f} security={score.security:.2f} performance={score.performance:.2f}) "
        f"best={best_score:.3f}"
    )

    if score.total > best_score:
        best_sql, best_score = candidate, score.total

    update: Dict[str, Any] = {
        "sql_optimize_count": rounds,
        "sql_optimize_best_sql": best_sql,
        "sql_optimize_best_score": best_score,
        "sql_optimize_finished": False,
    }
    if score.total > threshold or rounds >= max_rounds:
        update.update(_accept(best_sql, best_score, threshold))
    return update
