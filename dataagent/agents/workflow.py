"""
Data agent workflow definition.

    intent_recognition -> evidence_recall -> query_enhance -> schema_recall
      -> table_relation -> feasibility_assessment -> planner -> plan_executor
    plan_executor dispatches each plan step to the SQL branch
      (sql_generate -> sql_optimize -> semantic_consistency -> sql_execute),
      the Python branch (python_generate -> python_execute -> python_analyze)
      or report_generator, optionally pausing at human_feedback first.
"""

from functools import partial

from dataagent.agents.context import AgentContext
from dataagent.agents.nodes import (
    intent_recognition_node,
    evidence_recall_node,
    query_enhance_node,
    schema_recall_node,
    table_relation_node,
    feasibility_assessment_node,
    planner_node,
    plan_executor_node,
    human_feedback_node,
    sql_generate_node,
    sql_optimize_node,
    semantic_consistency_node,
    sql_execute_node,
    python_generate_node,
    python_execute_node,
    python_analyze_node,
    report_generator_node,
)
from dataagent.agents.nodes.report import report_kind
from dataagent.agents import routing
from dataagent.constants import (
    INTENT_RECOGNITION,
    EVIDENCE_RECALL,
    QUERY_ENHANCE,
    SCHEMA_RECALL,
    TABLE_RELATION,
    FEASIBILITY_ASSESSMENT,
    PLANNER,
    PLAN_EXECUTOR,
    HUMAN_FEEDBACK,
    SQL_GENERATE,
    SQL_OPTIMIZE,
    SEMANTIC_CONSISTENCY,
    SQL_EXECUTE,
    PYTHON_GENERATE,
    PYTHON_EXECUTE,
    PYTHON_ANALYZE,
    REPORT_GENERATOR,
)
from dataagent.graph.definition import GraphDefinition
from dataagent.graph.fragments import ContentKind
from dataagent.graph.state import WorkflowState, START, END


def build_data_agent_workflow(ctx: AgentContext) -> GraphDefinition:
    """Build the data agent graph definition (compiled by GraphExecutor)"""
    settings = ctx.settings
    g = GraphDefinition(WorkflowState, name="data_agent")

    g.add_node(INTENT_RECOGNITION, lambda s: intent_recognition_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(EVIDENCE_RECALL, lambda s: evidence_recall_node(s, ctx))
    g.add_node(QUERY_ENHANCE, lambda s: query_enhance_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(SCHEMA_RECALL, lambda s: schema_recall_node(s, ctx))
    g.add_node(TABLE_RELATION, lambda s: table_relation_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(FEASIBILITY_ASSESSMENT, lambda s: feasibility_assessment_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(PLANNER, lambda s: planner_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(PLAN_EXECUTOR, lambda s: plan_executor_node(s, ctx))
    g.add_node(HUMAN_FEEDBACK, lambda s: human_feedback_node(s, ctx), interrupt_before=True)
    g.add_node(SQL_GENERATE, lambda s: sql_generate_node(s, ctx), content_kind=ContentKind.SQL)
    g.add_node(SQL_OPTIMIZE, lambda s: sql_optimize_node(s, ctx), content_kind=ContentKind.SQL)
    g.add_node(SEMANTIC_CONSISTENCY, lambda s: semantic_consistency_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(SQL_EXECUTE, lambda s: sql_execute_node(s, ctx), content_kind=ContentKind.JSON)
    g.add_node(PYTHON_GENERATE, lambda s: python_generate_node(s, ctx), content_kind=ContentKind.PYTHON)
    g.add_node(PYTHON_EXECUTE, lambda s: python_execute_node(s, ctx))
    g.add_node(PYTHON_ANALYZE, lambda s: python_analyze_node(s, ctx), content_kind=ContentKind.MARKDOWN)
    g.add_node(REPORT_GENERATOR, lambda s: report_generator_node(s, ctx), content_kind=report_kind(settings.plain_report))

    g.add_edge(START, INTENT_RECOGNITION)
    g.add_conditional_edge(
        INTENT_RECOGNITION,
        partial(routing.route_after_intent, settings=settings),
        [EVIDENCE_RECALL, END],
    )
    g.add_edge(EVIDENCE_RECALL, QUERY_ENHANCE)
    g.add_conditional_edge(
        QUERY_ENHANCE,
        partial(routing.route_after_query_enhance, settings=settings),
        [SCHEMA_RECALL, END],
    )
    g.add_edge(SCHEMA_RECALL, TABLE_RELATION)
    g.add_conditional_edge(
        TABLE_RELATION,
        partial(routing.route_after_table_relation, settings=settings),
        [FEASIBILITY_ASSESSMENT, END, TABLE_RELATION],
    )
    g.add_conditional_edge(
        FEASIBILITY_ASSESSMENT,
        partial(routing.route_after_feasibility, settings=settings),
        [PLANNER, END],
    )
    g.add_edge(PLANNER, PLAN_EXECUTOR)
    g.add_conditional_edge(
        PLAN_EXECUTOR,
        partial(routing.route_after_plan_executor, settings=settings),
        [PLANNER, SQL_GENERATE, PYTHON_GENERATE, REPORT_GENERATOR, HUMAN_FEEDBACK, END],
    )
    g.add_conditional_edge(
        SQL_GENERATE,
        partial(routing.route_after_sql_generate, settings=settings),
        [SQL_GENERATE, FEASIBILITY_ASSESSMENT, SQL_OPTIMIZE, END],
    )
    g.add_conditional_edge(
        SQL_OPTIMIZE,
        partial(routing.route_after_sql_optimize, settings=settings),
        [SQL_OPTIMIZE, SEMANTIC_CONSISTENCY],
    )
    g.add_conditional_edge(
        SEMANTIC_CONSISTENCY,
        partial(routing.route_after_semantic_consistency, settings=settings),
        [SQL_GENERATE, SQL_EXECUTE],
    )
    g.add_conditional_edge(
        SQL_EXECUTE,
        partial(routing.route_after_sql_execute, settings=settings),
        [SQL_GENERATE, PLAN_EXECUTOR],
    )
    g.add_edge(PYTHON_GENERATE, PYTHON_EXECUTE)
    g.add_conditional_edge(
        PYTHON_EXECUTE,
        partial(routing.route_after_python_execute, settings=settings),
        [PYTHON_ANALYZE, END, PYTHON_GENERATE],
    )
    g.add_edge(PYTHON_ANALYZE, PLAN_EXECUTOR)
    g.add_conditional_edge(
        HUMAN_FEEDBACK,
        partial(routing.route_after_human_feedback, settings=settings),
        [PLANNER, PLAN_EXECUTOR, END],
    )
    g.add_edge(REPORT_GENERATOR, END)

    return g
