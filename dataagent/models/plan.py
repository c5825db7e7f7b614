"""
Execution plan produced by the planner node
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ToolName(str, Enum):
    SQL_GENERATE = "SQL_GENERATE"
    PYTHON_GENERATE = "PYTHON_GENERATE"
    REPORT = "REPORT"


class ToolParameters(BaseModel):
    description: str = ""
    sql_query: Optional[str] = None
    summary_and_recommendations: Optional[str] = None


class ExecutionStep(BaseModel):
    step: int
    tool_to_use: ToolName
    tool_parameters: ToolParameters = Field(default_factory=ToolParameters)

    @field_validator("tool_to_use", mode="before")
    @classmethod
    def _normalize_tool(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class Plan(BaseModel):
    """
    Planner output.

    Example:
        {
          "thought_process": "count orders per day, then summarize",
          "execution_plan": [
            {"step": 1, "tool_to_use": "SQL_GENERATE",
             "tool_parameters": {"description": "daily order counts"}},
            {"step": 2, "tool_to_use": "REPORT",
             "tool_parameters": {"summary_and_recommendations": "..."}}
          ]
        }
    """
    thought_process: str = ""
    execution_plan: List[ExecutionStep] = Field(default_factory=list)

    def step_at(self, number: int) -> Optional[ExecutionStep]:
        """1-based step lookup"""
        if 1 <= number <= len(self.execution_plan):
            return self.execution_plan[number - 1]
        return None

    @classmethod
    def single_sql_step(cls, question: str) -> "Plan":
        """Fixed plan used when only SQL is wanted"""
        return cls(
            thought_process="Generate a single SQL query answering the question.",
            execution_plan=[
                ExecutionStep(
                    step=1,
                    tool_to_use=ToolName.SQL_GENERATE,
                    tool_parameters=ToolParameters(description=question),
                )
            ],
        )
