"""
Report generator node: final Markdown or HTML answer
"""

import json
from typing import Any, Dict

from dataagent.agents.context import AgentContext
from dataagent.agents.prompts import REPORT_SYSTEM, REPORT_USER
from dataagent.agents.utils import llm_call, question_of, trace_step
from dataagent.graph.fragments import ContentKind

_ROWS_IN_REPORT = 50


def report_kind(plain_report: bool) -> ContentKind:
    return ContentKind.MARKDOWN if plain_report else ContentKind.HTML


@trace_step("report_generator")
async def report_generator_node(state: Dict[str, Any], ctx: AgentContext) -> Dict[str, Any]:
    plain = ctx.settings.plain_report
    plan = state.get("plan") or {}
    summary = ""
    for step in plan.get("execution_plan") or []:
        params = step.get("tool_parameters") or {}
        if params.get("summary_and_recommendations"):
            summary = params["summary_and_recommendations"]

    sql_results = {
        step: {"sql": r.get("sql"), "columns": r.get("columns"), "rows": (r.get("rows") or [])[:_ROWS_IN_REPORT]}
        for step, r in (state.get("sql_execute_results") or {}).items()
    }
    report = await llm_call(
        ctx,
        REPORT_SYSTEM.format(format="Markdown" if plain else "a self-contained HTML document"),
        REPORT_USER.format(
            question=question_of(state),
            plan=plan.get("thought_process", ""),
            sql_results=json.dumps(sql_results, indent=2, default=str),
            analysis=json.dumps(state.get("python_analysis") or {}, indent=2),
            summary=summary or "(none)",
        ),
        report_kind(plain),
    )
    return {
        "result": report.strip(),
        "plan_output": "",
        "plan_current_step": 0,
        "plan_next_node": "",
        "plan_validation_error": None,
    }
