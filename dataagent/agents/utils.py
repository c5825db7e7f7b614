"""
Pipeline node utilities: tracing, model-output streaming, JSON extraction
"""

import asyncio
import functools
import json
import re
import time
import uuid
from typing import Any, AsyncIterator, Dict, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from dataagent.graph.fragments import ContentKind, FencedBlockParser, current_sink

T = TypeVar("T", bound=BaseModel)

_JSON_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def trace_step(step_name: str):
    """Decorator for tracing async workflow step execution."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(state, ctx, *args, **kwargs):
            trace_id = state.get("trace_id") or str(uuid.uuid4())
            thread_id = state.get("thread_id", "-")
            start = time.time()
            logger.info(
                f"[TRACE] step_start: {step_name} | thread_id={thread_id} | trace_id={trace_id}"
            )
            try:
                result = await func(state, ctx, *args, **kwargs)
                duration = time.time() - start
                logger.info(
                    f"[TRACE] step_end: {step_name} | thread_id={thread_id} | trace_id={trace_id} | "
                    f"duration_ms={int(duration * 1000)} | output_keys={list((result or {}).keys())}"
                )
                result = dict(result or {})
                result.setdefault("trace_id", trace_id)
                return result
            except Exception as e:
                logger.error(
                    f"[TRACE] step_error: {step_name} | thread_id={thread_id} | trace_id={trace_id} | error={e}"
                )
                raise

        return wrapper

    return decorator


async def stream_llm(tokens: AsyncIterator[str], kind: Optional[ContentKind] = None) -> str:
    """
    Tee a model token stream.

    Every token is forwarded live to the running node's sink (fence markers
    stripped, content tagged by kind) and appended to an accumulation buffer.
    Returns the complete raw text once the stream ends.
    """
    sink = current_sink()
    parser = FencedBlockParser(kind or (sink.default_kind if sink else ContentKind.TEXT))
    buffer = []
    async for token in tokens:
        buffer.append(token)
        if sink is not None:
            for text, text_kind in parser.feed(token):
                sink.emit(text, text_kind)
    if sink is not None:
        for text, text_kind in parser.flush():
            sink.emit(text, text_kind)
    return "".join(buffer)


async def llm_call(ctx, system: str, user: str, kind: Optional[ContentKind] = None) -> str:
    return await stream_llm(ctx.llm.call(system, user), kind)


def extract_json(text: str) -> Optional[Any]:
    """
    Parse the JSON object in a model response.

    Accepts a fenced ```json block, bare JSON, or JSON surrounded by prose.
    """
    if not text:
        return None
    candidates = []
    match = _JSON_FENCE.search(text)
    if match:
        candidates.append(match.group(1))
    candidates.append(text.strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def parse_model(text: str, model: Type[T]) -> Optional[T]:
    """JSON in a model response -> pydantic model, None if it does not fit"""
    data = extract_json(text)
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Model output does not match {model.__name__}: {e}")
        return None


async def run_blocking(fn, *args):
    """Run a blocking knowledge-store / schema call off the event loop"""
    return await asyncio.to_thread(fn, *args)


def current_step(state: Dict[str, Any]) -> Dict[str, Any]:
    """Plan step being executed, as a dict (empty if none)"""
    plan = state.get("plan") or {}
    steps = plan.get("execution_plan") or []
    number = state.get("plan_current_step") or 1
    if 1 <= number <= len(steps):
        return steps[number - 1]
    return {}


def step_description(state: Dict[str, Any]) -> str:
    step = current_step(state)
    params = step.get("tool_parameters") or {}
    return params.get("description") or state.get("canonical_query") or state.get("input", "")


def question_of(state: Dict[str, Any]) -> str:
    return state.get("canonical_query") or state.get("input", "")
