"""
Pydantic models for the HTTP contract
"""

from typing import Optional

from pydantic import BaseModel, Field


class ChatStreamRequest(BaseModel):
    """
    A question for the data agent, or a reviewer's answer to a paused plan.

    Set `human_feedback` to resume the paused run of `thread_id`; `approved`
    and `feedback_content` carry the verdict.
    """
    thread_id: Optional[str] = Field(default=None, description="Conversation thread; generated if absent")
    agent_id: str = Field(..., min_length=1, description="Agent whose datasource and knowledge are used")
    query: str = Field(default="", max_length=4000, description="The user's question")
    human_feedback: bool = False
    approved: bool = False
    feedback_content: str = ""
    nl2sql_only: bool = False
    human_review_enabled: Optional[bool] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"thread_id": "t-1", "agent_id": "sales", "query": "Total revenue by region in 2024"},
                {"thread_id": "t-1", "agent_id": "sales", "human_feedback": True, "approved": True},
            ]
        }
    }


class StreamErrorEvent(BaseModel):
    event: str = "error"
    thread_id: Optional[str] = None
    error: str


class Nl2SqlRequest(BaseModel):
    agent_id: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1, max_length=4000)


class Nl2SqlResponse(BaseModel):
    sql: str


class StopResponse(BaseModel):
    thread_id: str
    stopped: bool


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
