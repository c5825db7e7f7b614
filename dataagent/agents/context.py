"""
Agent context - dependencies for workflow nodes
"""

from dataclasses import dataclass, field
from typing import Any, Callable

from dataagent.config.settings import Settings
from dataagent.sql.scoring import SqlQualityScore, evaluate_sql_quality


@dataclass
class AgentContext:
    """Context holding dependencies for pipeline nodes"""

    settings: Settings
    llm: Any  # stream(prompt) / call(system, user) token iterators
    knowledge: Any  # KnowledgeStore
    datasources: Any  # DatasourceResolver
    closure_builder: Any  # SchemaClosureBuilder
    sql_executor: Any  # SqlExecutor
    python_executor: Any  # SubprocessPythonExecutor
    scorer: Callable[[str], SqlQualityScore] = field(default=evaluate_sql_quality)
