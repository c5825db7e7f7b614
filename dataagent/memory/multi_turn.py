"""
Multi-turn dialogue context.

Keeps, per thread, a short history of (question, plan summary) pairs so the
planner and SQL prompts can reference earlier turns, plus one pending turn
that accumulates planner output while a run is in flight.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

from loguru import logger

NO_HISTORY = "(none)"


@dataclass(frozen=True)
class ConversationTurn:
    user_question: str
    plan_summary: str


@dataclass
class PendingTurn:
    user_question: str
    chunks: List[str] = field(default_factory=list)

    @property
    def plan(self) -> str:
        return "".join(self.chunks).strip()


def _abbreviate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


class MultiTurnContextStore:
    def __init__(self, max_turn_history: int = 5, max_plan_length: int = 2000):
        self.max_turn_history = max_turn_history
        self.max_plan_length = max_plan_length
        self._history: Dict[str, Deque[ConversationTurn]] = {}
        self._pending: Dict[str, PendingTurn] = {}
        self._lock = threading.Lock()

    def begin_turn(self, thread_id: str, user_question: str) -> None:
        if not thread_id or not user_question or not user_question.strip():
            return
        with self._lock:
            self._pending[thread_id] = PendingTurn(user_question.strip())

    def append_planner_chunk(self, thread_id: str, chunk: str) -> None:
        if not thread_id or not chunk:
            return
        with self._lock:
            pending = self._pending.get(thread_id)
            if pending is not None:
                pending.chunks.append(chunk)

    def finish_turn(self, thread_id: str) -> Optional[ConversationTurn]:
        """Commit the pending turn; turns without planner output are not recorded"""
        with self._lock:
            pending = self._pending.pop(thread_id, None)
            if pending is None:
                return None
            plan = pending.plan
            if not plan:
                logger.debug(f"No planner output recorded for thread {thread_id}, skipping history update")
                return None
            turn = ConversationTurn(pending.user_question, _abbreviate(plan, self.max_plan_length))
            history = self._history.setdefault(thread_id, deque())
            while len(history) >= self.max_turn_history:
                history.popleft()
            history.append(turn)
            return turn

    def discard_pending(self, thread_id: str) -> None:
        with self._lock:
            self._pending.pop(thread_id, None)

    def restart_last_turn(self, thread_id: str) -> Optional[str]:
        """
        Move the latest committed turn back to pending with its original
        question, so a corrected plan replaces it instead of adding a turn.
        """
        with self._lock:
            history = self._history.get(thread_id)
            if not history:
                return None
            last = history.pop()
            self._pending[thread_id] = PendingTurn(last.user_question)
            return last.user_question

    def pending_question(self, thread_id: str) -> Optional[str]:
        pending = self._pending.get(thread_id)
        return pending.user_question if pending else None

    def history(self, thread_id: str) -> List[ConversationTurn]:
        with self._lock:
            return list(self._history.get(thread_id, ()))

    def build_context(self, thread_id: str) -> str:
        turns = self.history(thread_id)
        if not turns:
            return NO_HISTORY
        return "\n".join(f"User: {t.user_question}\nAI plan: {t.plan_summary}" for t in turns)

    def clear(self, thread_id: str) -> None:
        with self._lock:
            self._history.pop(thread_id, None)
            self._pending.pop(thread_id, None)
