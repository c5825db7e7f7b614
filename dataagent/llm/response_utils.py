"""
LLM response utilities for handling multi-format model outputs.

Chunks from `astream` carry either a plain string or a list of content
blocks (reasoning models); only the text blocks are forwarded.
"""

from typing import Any


def extract_text_from_response(response: Any) -> str:
    """
    Extract text content from an LLM message or message chunk.

    Example:
        chunk.content = "SELECT"                          -> "SELECT"
        chunk.content = [{'type': 'reasoning', ...},
                         {'type': 'text', 'text': ' 1'}]  -> " 1"
    """
    content = response.content if hasattr(response, "content") else response

    if not content:
        return ""

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for block in content:
            if isinstance(block, dict):
                if block.get("type") == "reasoning":
                    continue
                if "text" in block:
                    text_parts.append(block["text"])
            elif isinstance(block, str):
                text_parts.append(block)
        return "".join(text_parts)

    return str(content)
