"""
Pipeline nodes
"""

from dataagent.agents.nodes.intent import intent_recognition_node
from dataagent.agents.nodes.evidence import evidence_recall_node
from dataagent.agents.nodes.query_enhance import query_enhance_node
from dataagent.agents.nodes.schema_recall import schema_recall_node
from dataagent.agents.nodes.table_relation import table_relation_node
from dataagent.agents.nodes.feasibility import feasibility_assessment_node
from dataagent.agents.nodes.planner import planner_node
from dataagent.agents.nodes.plan_executor import plan_executor_node
from dataagent.agents.nodes.human_feedback import human_feedback_node
from dataagent.agents.nodes.sql_generate import sql_generate_node
from dataagent.agents.nodes.sql_optimize import sql_optimize_node
from dataagent.agents.nodes.semantic_consistency import semantic_consistency_node
from dataagent.agents.nodes.sql_execute import sql_execute_node
from dataagent.agents.nodes.python_nodes import (
    python_generate_node,
    python_execute_node,
    python_analyze_node,
)
from dataagent.agents.nodes.report import report_generator_node

__all__ = [
    "intent_recognition_node",
    "evidence_recall_node",
    "query_enhance_node",
    "schema_recall_node",
    "table_relation_node",
    "feasibility_assessment_node",
    "planner_node",
    "plan_executor_node",
    "human_feedback_node",
    "sql_generate_node",
    "sql_optimize_node",
    "semantic_consistency_node",
    "sql_execute_node",
    "python_generate_node",
    "python_execute_node",
    "python_analyze_node",
    "report_generator_node",
]
