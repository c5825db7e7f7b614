"""
Workflow state shared by every pipeline node.

Each key has replace-on-write semantics: a node's returned partial dict
overwrites the previous value. Values are plain JSON-compatible data so a
snapshot is a value copy; nodes rehydrate pydantic models when they need them.
"""

from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import START, END


class WorkflowState(TypedDict, total=False):
    # Run identity and inputs
    thread_id: str
    agent_id: str
    input: str
    trace_id: str
    nl2sql_only: bool
    human_review_enabled: bool
    multi_turn_context: str

    # Intent / evidence / query enhancement
    intent: Dict[str, Any]
    evidence: str
    canonical_query: str
    expanded_queries: List[str]

    # Schema recall and closure
    schema: Dict[str, Any]
    table_relation_output: Dict[str, Any]
    table_relation_exception: Optional[str]
    table_relation_retry_count: int

    # Feasibility
    feasibility: Dict[str, Any]

    # Planning
    plan_output: str
    plan: Dict[str, Any]
    plan_current_step: int
    plan_next_node: str
    plan_validation_error: Optional[str]
    plan_repair_count: int
    plan_reviewed: bool

    # Human feedback, merged on resume
    human_feedback_approved: bool
    human_feedback_content: str

    # SQL generation / refinement / execution
    sql_generate_output: str
    sql_generate_count: int
    # Plan step the generation counters belong to
    sql_generate_step: int
    sql_retry: Dict[str, Any]
    sql_optimize_count: int
    sql_optimize_best_sql: str
    sql_optimize_best_score: float
    sql_optimize_finished: bool
    sql_optimize_output: str
    sql_optimize_below_threshold: bool
    semantic_consistency_output: Dict[str, Any]
    sql_execute_results: Dict[str, Any]
    sql_execute_failed: bool
    final_sql: str

    # Python analysis
    python_code: str
    python_execute_output: str
    python_execute_success: bool
    python_tries_count: int
    python_fallback: bool
    python_analysis: Dict[str, Any]

    # Terminal output
    result: str
    budget_exhausted: Optional[str]


__all__ = ["WorkflowState", "START", "END"]
