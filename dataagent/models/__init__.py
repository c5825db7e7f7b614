"""
Pydantic data models exchanged between pipeline nodes
"""

from dataagent.models.plan import Plan, ExecutionStep, ToolParameters, ToolName
from dataagent.models.schema import SchemaDTO, TableDTO, ColumnDTO
from dataagent.models.outputs import (
    IntentOutput,
    QueryEnhanceOutput,
    FeasibilityOutput,
    SemanticCheckOutput,
    SqlRetry,
    SqlResult,
)

__all__ = [
    "Plan",
    "ExecutionStep",
    "ToolParameters",
    "ToolName",
    "SchemaDTO",
    "TableDTO",
    "ColumnDTO",
    "IntentOutput",
    "QueryEnhanceOutput",
    "FeasibilityOutput",
    "SemanticCheckOutput",
    "SqlRetry",
    "SqlResult",
]
