"""
Configuration management for the data agent.
Loads settings from environment variables and the project .env file.
"""

import os
from pathlib import Path
from typing import Dict, Optional
from dataclasses import dataclass, field

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from loguru import logger

# This file is at dataagent/config/settings.py, so project root is 3 levels up
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file, override=False)
    logger.debug(f"Loaded .env from: {_env_file}")
else:
    load_dotenv(override=False)


@dataclass
class DatasourceConfig:
    """Target database a data agent answers questions against"""
    name: str
    url: str
    dialect: str = "sqlite"
    # Declared logical relations, "table.col=table.col"
    logical_relations: list = field(default_factory=list)

    @classmethod
    def from_env(cls, agent_id: str) -> Optional["DatasourceConfig"]:
        """Resolve DATAAGENT_DS_<AGENT_ID>_URL style variables"""
        prefix = f"DATAAGENT_DS_{agent_id.upper()}"
        url = os.getenv(f"{prefix}_URL")
        if not url:
            return None
        relations = [r.strip() for r in os.getenv(f"{prefix}_RELATIONS", "").split(",") if r.strip()]
        return cls(
            name=os.getenv(f"{prefix}_NAME", agent_id),
            url=url,
            dialect=url.split(":", 1)[0].split("+", 1)[0],
            logical_relations=relations,
        )


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_prefix="DATAAGENT_", extra="ignore")

    # LLM Provider Selection
    llm_provider: str = Field(default="openai")  # Options: "openai" | "ollama"
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    llm_temperature: float = Field(default=0.1)
    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3")
    max_output_tokens: int = Field(default=4096)
    llm_connect_timeout: float = Field(default=600.0)
    llm_response_timeout: float = Field(default=600.0)

    # Retry / refinement budgets
    max_sql_retry_count: int = Field(default=10)
    max_sql_optimize_count: int = Field(default=10)
    sql_score_threshold: float = Field(default=0.95)
    max_table_relation_retry_count: int = Field(default=3)
    max_plan_repair_count: int = Field(default=3)
    max_python_tries_count: int = Field(default=5)
    graph_max_steps: int = Field(default=100)

    # Multi-turn context
    max_turn_history: int = Field(default=5)
    max_plan_length: int = Field(default=2000)

    # Retrieval
    similarity_threshold: float = Field(default=0.2)
    top_k: int = Field(default=30)
    evidence_top_k: int = Field(default=5)
    chroma_persist_dir: str = Field(default=str(PROJECT_ROOT / "data" / "chroma"))

    # Streaming / execution
    display_queue_size: int = Field(default=256)
    python_timeout_seconds: float = Field(default=60.0)
    worker_pool_size: Optional[int] = Field(default=None)
    worker_shutdown_timeout: float = Field(default=60.0)

    # Behaviour toggles
    human_review_enabled: bool = Field(default=False)
    plain_report: bool = Field(default=False)

    # Datasources keyed by agent id, e.g. DATAAGENT_DATASOURCES='{"sales": "sqlite:///sales.db"}'
    datasources: Dict[str, str] = Field(default_factory=dict)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: str = Field(default=str(PROJECT_ROOT / "data" / "logs" / "dataagent.log"))

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8065)
    cors_origins: str = Field(default="*")

    def get_datasource(self, agent_id: str) -> Optional[DatasourceConfig]:
        """Datasource for an agent: explicit map first, then per-agent env variables"""
        url = self.datasources.get(agent_id)
        if url:
            return DatasourceConfig(
                name=agent_id,
                url=url,
                dialect=url.split(":", 1)[0].split("+", 1)[0],
            )
        return DatasourceConfig.from_env(agent_id)


settings = Settings()
