"""
Streamed output fragments.

Every piece of text a node forwards to the caller is an OutputFragment that
carries an explicit content kind, so structured blocks (SQL, JSON, Markdown)
are identified by tag instead of by marker text embedded in the stream.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import BaseModel


class ContentKind(str, Enum):
    TEXT = "text"
    SQL = "sql"
    JSON = "json"
    MARKDOWN = "markdown"
    HTML = "html"
    PYTHON = "python"


_FENCE = "```"

_LANGUAGE_KINDS = {
    "sql": ContentKind.SQL,
    "json": ContentKind.JSON,
    "python": ContentKind.PYTHON,
    "py": ContentKind.PYTHON,
    "html": ContentKind.HTML,
    "markdown": ContentKind.MARKDOWN,
    "md": ContentKind.MARKDOWN,
}


class OutputFragment(BaseModel):
    """One forwarded piece of node output"""
    node_name: str
    text: str
    content_kind: ContentKind = ContentKind.TEXT


class FencedBlockParser:
    """
    Incremental parser for one node's token stream.

    Strips Markdown code-fence markers (also when a marker is split across
    tokens) and tags the text between them with the fence language's kind.
    Text outside fences gets the node's default kind. Content is passed
    through verbatim.
    """

    def __init__(self, default_kind: ContentKind = ContentKind.TEXT):
        self.default_kind = default_kind
        self.current_kind = default_kind
        self.in_block = False
        self._buffer = ""

    def feed(self, token: str) -> List[tuple]:
        """Consume a token, return [(text, kind)] ready to forward"""
        self._buffer += token
        out: List[tuple] = []

        while True:
            idx = self._buffer.find(_FENCE)
            if idx < 0:
                # Hold back trailing backticks that may start a marker
                keep = len(self._buffer) - len(self._buffer.rstrip("`"))
                keep = min(keep, len(_FENCE) - 1)
                ready = self._buffer[: len(self._buffer) - keep]
                self._buffer = self._buffer[len(self._buffer) - keep:]
                if ready:
                    out.append((ready, self.current_kind))
                return out

            if idx > 0:
                out.append((self._buffer[:idx], self.current_kind))
            rest = self._buffer[idx + len(_FENCE):]

            if not self.in_block:
                newline = rest.find("\n")
                if newline < 0:
                    # Language tag not complete yet
                    self._buffer = self._buffer[idx:]
                    return out
                language = rest[:newline].strip().lower()
                self.current_kind = _LANGUAGE_KINDS.get(language, self.default_kind)
                self.in_block = True
                self._buffer = rest[newline + 1:]
            else:
                self.in_block = False
                self.current_kind = self.default_kind
                self._buffer = rest[1:] if rest.startswith("\n") else rest

    def flush(self) -> List[tuple]:
        """Emit whatever is still held back at end of stream"""
        remaining = self._buffer
        self._buffer = ""
        if not remaining:
            return []
        if remaining.startswith(_FENCE) and not self.in_block:
            # Dangling opening marker with no body
            return []
        return [(remaining, self.current_kind)]


@dataclass
class FragmentSink:
    """Where the running node forwards its fragments"""
    node_name: str
    default_kind: ContentKind
    writer: Callable[[Any], None]

    def emit(self, text: str, kind: Optional[ContentKind] = None) -> None:
        if not text:
            return
        self.writer(OutputFragment(node_name=self.node_name, text=text, content_kind=kind or self.default_kind))


_current_sink: ContextVar[Optional[FragmentSink]] = ContextVar("dataagent_fragment_sink", default=None)


def bind_sink(sink: FragmentSink):
    return _current_sink.set(sink)


def unbind_sink(token) -> None:
    _current_sink.reset(token)


def current_sink() -> Optional[FragmentSink]:
    return _current_sink.get()


def emit(text: str, kind: Optional[ContentKind] = None) -> None:
    """Forward text from the running node; no-op outside a graph run"""
    sink = _current_sink.get()
    if sink is not None:
        sink.emit(text, kind)
