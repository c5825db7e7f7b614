"""
Structured outputs of individual nodes
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class IntentOutput(BaseModel):
    classification: str = "data_analysis"  # "chitchat" | "data_analysis"
    reply: str = ""

    @property
    def is_chitchat(self) -> bool:
        return self.classification.strip().lower() == "chitchat"


class QueryEnhanceOutput(BaseModel):
    canonical_query: str = ""
    expanded_queries: List[str] = Field(default_factory=list)


class FeasibilityOutput(BaseModel):
    feasible: bool = True
    reason: str = ""


class SemanticCheckOutput(BaseModel):
    passed: bool = True
    reason: str = ""


class SqlRetry(BaseModel):
    """Why SQL generation is being re-entered"""
    reason: str = ""
    semantic_fail: bool = False
    execute_fail: bool = False

    @classmethod
    def semantic(cls, reason: str) -> "SqlRetry":
        return cls(reason=reason, semantic_fail=True)

    @classmethod
    def execution(cls, reason: str) -> "SqlRetry":
        return cls(reason=reason, execute_fail=True)

    @property
    def active(self) -> bool:
        return self.semantic_fail or self.execute_fail


class SqlResult(BaseModel):
    sql: str = ""
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def row_count(self) -> int:
        return len(self.rows)
