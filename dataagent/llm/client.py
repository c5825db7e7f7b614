"""
LLM client factory and streaming client.

Creates the configured LangChain chat model, keeps the active client in a
registry that can be swapped when provider configuration changes, and
exposes the two calls the pipeline uses: `stream(prompt)` and
`call(system, user)`, both async token iterators.
"""

import threading
from typing import Any, AsyncIterator, Callable, Optional

import httpx
from langchain_core.messages import HumanMessage, SystemMessage
from loguru import logger

from dataagent.config.settings import Settings, settings as default_settings
from dataagent.llm.response_utils import extract_text_from_response
from dataagent.utils.errors import UpstreamUnavailableError


def create_llm(
    temperature: Optional[float] = None,
    max_completion_tokens: Optional[int] = None,
    model: Optional[str] = None,
    settings: Optional[Settings] = None,
):
    """
    Factory function to create appropriate LLM based on provider configuration.

    Args:
        temperature: Generation temperature (defaults to settings.llm_temperature)
        max_completion_tokens: Max tokens for completion (defaults to settings.max_output_tokens)
        model: Model name (defaults to provider-specific model)

    Returns:
        LangChain ChatModel instance (ChatOpenAI or ChatOllama)
    """
    cfg = settings or default_settings
    provider = cfg.llm_provider.lower()
    max_tokens = max_completion_tokens or cfg.max_output_tokens
    temp = temperature if temperature is not None else cfg.llm_temperature
    # Model calls are long-running; connect and response budgets are separate
    timeout = httpx.Timeout(cfg.llm_response_timeout, connect=cfg.llm_connect_timeout)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not cfg.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when DATAAGENT_LLM_PROVIDER=openai")

        return ChatOpenAI(
            model=model or cfg.openai_model,
            api_key=cfg.openai_api_key,
            base_url=cfg.openai_base_url,
            temperature=temp,
            max_completion_tokens=max_tokens,
            timeout=timeout,
            streaming=True,
        )

    elif provider == "ollama":
        from langchain_community.chat_models import ChatOllama

        return ChatOllama(
            model=model or cfg.ollama_model,
            base_url=cfg.ollama_base_url,
            temperature=temp,
            num_predict=max_tokens,
            timeout=int(cfg.llm_response_timeout),
        )

    else:
        raise ValueError(f"Unsupported LLM provider: {provider}. Supported: 'openai', 'ollama'")


class LangChainModelClient:
    """Async token streaming over a LangChain chat model"""

    def __init__(self, chat_model: Any):
        self.chat_model = chat_model

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        async for token in self._astream([HumanMessage(content=prompt)]):
            yield token

    async def call(self, system: str, user: str) -> AsyncIterator[str]:
        async for token in self._astream([SystemMessage(content=system), HumanMessage(content=user)]):
            yield token

    async def _astream(self, messages) -> AsyncIterator[str]:
        try:
            async for chunk in self.chat_model.astream(messages):
                text = extract_text_from_response(chunk)
                if text:
                    yield text
        except UpstreamUnavailableError:
            raise
        except Exception as e:
            # Provider SDKs (openai, ollama, httpx) each raise their own types
            logger.error(f"LLM call failed: {type(e).__name__}: {e}")
            raise UpstreamUnavailableError(f"Language model unavailable: {type(e).__name__}: {e}") from e


class ModelRegistry:
    """
    Holds the active model client.

    Reads are a plain attribute load; construction and swaps happen under a
    lock so concurrent first use builds the client once.
    """

    def __init__(self, factory: Optional[Callable[[], Any]] = None):
        self._factory = factory or (lambda: LangChainModelClient(create_llm()))
        self._client = None
        self._lock = threading.Lock()

    def get(self):
        client = self._client
        if client is not None:
            return client
        with self._lock:
            if self._client is None:
                self._client = self._factory()
                logger.info(f"Model client initialized: {type(self._client).__name__}")
            return self._client

    def swap(self, client) -> None:
        """Install a new client after a provider configuration change"""
        with self._lock:
            self._client = client
        logger.info(f"Model client swapped: {type(client).__name__}")

    def refresh(self, factory: Optional[Callable[[], Any]] = None) -> None:
        """Drop the cached client; the next get() rebuilds it"""
        with self._lock:
            if factory is not None:
                self._factory = factory
            self._client = None
        logger.info("Model client cache cleared")

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        async for token in self.get().stream(prompt):
            yield token

    async def call(self, system: str, user: str) -> AsyncIterator[str]:
        async for token in self.get().call(system, user):
            yield token
