"""
Python analysis nodes: generate code, run it, summarise the output
"""

import json
import re
from typing import Any, Dict

from loguru import logger

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import (
    PYTHON_ANALYZE_SYSTEM,
    PYTHON_ANALYZE_USER,
    PYTHON_GENERATE_SYSTEM,
    PYTHON_GENERATE_USER,
    PYTHON_RETRY,
)
from dataagent.agents.utils import llm_call, question_of, step_description, trace_step
from dataagent.graph.fragments import ContentKind, emit

_PYTHON_FENCE = re.compile(r"```(?:python|py)?\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_PREVIEW_ROWS = 3


def extract_code(text: str) -> str:
    match = _PYTHON_FENCE.search(text or "")
    if match:
        return match.group(1).strip()
    return (text or "").replace("```", "").strip()


def _preview(results: Dict[str, Any]) -> str:
    preview = {
        step: {"columns": r.get("columns", []), "rows": (r.get("rows") or [])[:_PREVIEW_ROWS]}
        for step, r in results.items()
    }
    return json.dumps(preview, indent=2, default=str) if preview else "(no data)"


@trace_step("python_generate")
async def python_generate_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    retry = ""
    if state.get("python_execute_success") is False and state.get("python_code"):
        retry = PYTHON_RETRY.format(error=state.get("python_execute_output", ""), code=state["python_code"])

    text = await llm_call(
        ctx,
        PYTHON_GENERATE_SYSTEM,
        PYTHON_GENERATE_USER.format(
            question=question_of(state),
            step=step_description(state),
            preview=_preview(state.get("sql_execute_results") or {}),
            retry=retry,
        ),
        ContentKind.PYTHON,
    )
    return {"python_code": extract_code(text)}


@trace_step("python_execute")
async def python_execute_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    data = {
        step: {"columns": r.get("columns", []), "rows": r.get("rows", [])}
        for step, r in (state.get("sql_execute_results") or {}).items()
    }
    run = await ctx.python_executor.run(state.get("python_code", ""), data)
    emit(run.output, ContentKind.TEXT)

    if run.success:
        return {"python_execute_output": run.stdout, "python_execute_success": True}

    tries = (state.get("python_tries_count") or 0) + 1
    logger.warning(f"Python analysis failed (try {tries}/{ctx.settings.max_python_tries_count})")
    update: Dict[str, Any] = {
        "python_execute_output": run.output,
        "python_execute_success": False,
        "python_tries_count": tries,
    }
    if tries >= ctx.settings.max_python_tries_count:
        update["budget_exhausted"] = "python"
        update["result"] = f"Python analysis failed after {tries} attempts: {run.output[-500:]}"
    return update


@trace_step("python_analyze")
async def python_analyze_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    step = state.get("plan_current_step") or 1
    summary = await llm_call(
        ctx,
        PYTHON_ANALYZE_SYSTEM,
        PYTHON_ANALYZE_USER.format(step=step_description(state), output=state.get("python_execute_output", "")),
        ContentKind.MARKDOWN,
    )
    analysis = dict(state.get("python_analysis") or {})
    analysis[str(step)] = summary.strip()
    return {"python_analysis": analysis, "plan_current_step": step + 1}
