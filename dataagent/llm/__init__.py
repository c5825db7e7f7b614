"""
LLM module: model construction, hot-swappable registry and streaming client
"""

from dataagent.llm.client import create_llm, LangChainModelClient, ModelRegistry

__all__ = ["create_llm", "LangChainModelClient", "ModelRegistry"]
