"""
Graph orchestration: state, definition builder, executor and streamed fragments
"""

from dataagent.graph.state import WorkflowState, START, END
from dataagent.graph.fragments import ContentKind, OutputFragment, FencedBlockParser
from dataagent.graph.definition import GraphDefinition
from dataagent.graph.executor import GraphExecutor, GraphRun, ExecutionSnapshot

__all__ = [
    "WorkflowState",
    "START",
    "END",
    "ContentKind",
    "OutputFragment",
    "FencedBlockParser",
    "GraphDefinition",
    "GraphExecutor",
    "GraphRun",
    "ExecutionSnapshot",
]
