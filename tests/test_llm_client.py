"""
Tests for the LangChain model client and the model registry.
"""

import httpx
import openai
import pytest
from langchain_core.messages import AIMessageChunk

from dataagent.llm.client import LangChainModelClient, ModelRegistry
from dataagent.llm.response_utils import extract_text_from_response
from dataagent.utils.errors import UpstreamUnavailableError

from fakes import run_async


class FakeChatModel:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.messages = None

    async def astream(self, messages):
        self.messages = messages
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


async def tokens(stream):
    return [t async for t in stream]


def test_text_extraction_skips_reasoning_blocks():
    assert extract_text_from_response(AIMessageChunk(content="SELECT")) == "SELECT"
    chunk = AIMessageChunk(content=[
        {"type": "reasoning", "summary": "thinking"},
        {"type": "text", "text": " 1"},
    ])
    assert extract_text_from_response(chunk) == " 1"
    assert extract_text_from_response(AIMessageChunk(content="")) == ""


def test_call_streams_text_tokens_with_system_prompt():
    model = FakeChatModel([AIMessageChunk(content="SELECT"), AIMessageChunk(content=""), AIMessageChunk(content=" 1")])
    client = LangChainModelClient(model)

    assert run_async(tokens(client.call("### TASK: SQL GENERATION", "orders?"))) == ["SELECT", " 1"]
    assert [m.type for m in model.messages] == ["system", "human"]


def test_transport_failures_become_upstream_errors():
    model = FakeChatModel([AIMessageChunk(content="SEL")], error=httpx.ConnectError("connection refused"))
    client = LangChainModelClient(model)

    with pytest.raises(UpstreamUnavailableError, match="connection refused"):
        run_async(tokens(client.stream("hello")))


@pytest.mark.parametrize("error", [
    openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")),
    openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")),
    ValueError("ollama: model 'llama3' not found"),
])
def test_provider_sdk_failures_become_upstream_errors(error):
    client = LangChainModelClient(FakeChatModel([], error=error))

    with pytest.raises(UpstreamUnavailableError) as excinfo:
        run_async(tokens(client.call("### TASK: REPORT", "summarise")))
    assert excinfo.value.__cause__ is error


def test_registry_builds_once_and_swaps():
    built = []

    def factory():
        built.append(LangChainModelClient(FakeChatModel([AIMessageChunk(content="a")])))
        return built[-1]

    registry = ModelRegistry(factory)
    assert registry.get() is registry.get()
    assert len(built) == 1
    assert run_async(tokens(registry.call("sys", "user"))) == ["a"]

    replacement = LangChainModelClient(FakeChatModel([AIMessageChunk(content="b")]))
    registry.swap(replacement)
    assert registry.get() is replacement

    registry.refresh()
    assert registry.get() is built[-1]
    assert len(built) == 2
