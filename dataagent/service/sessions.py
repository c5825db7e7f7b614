"""
Live-run bookkeeping per thread id.

A SessionContext owns the display channel (a bounded queue the HTTP layer
drains), the task pumping the graph run and the content kind of the block
currently being forwarded. Teardown goes through the registry: whichever of
stop, completion or error removes the entry first performs the cleanup, and
every later attempt is a no-op.
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional

from loguru import logger

from dataagent.graph.fragments import ContentKind, OutputFragment
from dataagent.utils.errors import SessionBusyError

_CLOSED = object()


class SessionContext:
    def __init__(self, thread_id: str, queue_size: int = 256):
        self.thread_id = thread_id
        self.queue_size = max(1, queue_size)
        # Capacity is enforced in offer() so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.error: Optional[BaseException] = None
        self.content_kind: Optional[ContentKind] = None
        self.delivered = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def attach_task(self, task: asyncio.Task) -> None:
        """Register the run's task; if teardown already happened, cancel it at once"""
        if self._closed:
            logger.debug(f"Session {self.thread_id} already cleaned up, cancelling late task")
            task.cancel()
            return
        self._task = task

    def offer(self, fragment: OutputFragment) -> bool:
        """
        Best-effort display delivery.

        Returns False when the session is closed or the consumer is behind and
        the queue is full; the fragment is dropped in both cases.
        """
        if self._closed:
            return False
        if self._queue.qsize() >= self.queue_size:
            self.dropped += 1
            return False
        self._queue.put_nowait(fragment)
        self.content_kind = fragment.content_kind
        self.delivered += 1
        return True

    def offer_final(self, fragment: OutputFragment) -> None:
        """Delivery that makes room by dropping the oldest queued display fragment"""
        if self._closed:
            return
        if self._queue.qsize() >= self.queue_size:
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(fragment)
        self.content_kind = fragment.content_kind

    def cleanup(self, error: Optional[BaseException] = None) -> bool:
        """Close the channel and cancel the run; returns False if already closed"""
        if self._closed:
            return False
        self._closed = True
        self.error = error
        task = self._task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        self._queue.put_nowait(_CLOSED)
        logger.debug(
            f"Session {self.thread_id} cleaned up (delivered={self.delivered}, dropped={self.dropped}, "
            f"error={type(error).__name__ if error else None})"
        )
        return True

    async def fragments(self) -> AsyncIterator[OutputFragment]:
        """Drain the display channel until the session closes; re-raises a run error"""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                if self.error is not None:
                    raise self.error
                return
            yield item


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ConversationSessionRegistry:
    """One live session per thread id"""

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._sessions: Dict[str, SessionContext] = {}

    def register(self, thread_id: str) -> SessionContext:
        if thread_id in self._sessions:
            raise SessionBusyError(thread_id)
        session = SessionContext(thread_id, self.queue_size)
        self._sessions[thread_id] = session
        logger.info(f"Session registered: {thread_id}")
        return session

    def get(self, thread_id: str) -> Optional[SessionContext]:
        return self._sessions.get(thread_id)

    def remove(self, thread_id: str, expected: Optional[SessionContext] = None) -> Optional[SessionContext]:
        """Atomically take the entry out; with `expected`, only if it is that session"""
        current = self._sessions.get(thread_id)
        if current is None or (expected is not None and current is not expected):
            return None
        return self._sessions.pop(thread_id)

    def teardown(
        self,
        thread_id: str,
        error: Optional[BaseException] = None,
        expected: Optional[SessionContext] = None,
    ) -> bool:
        """Remove and clean up; True only for the caller that actually tore it down"""
        session = self.remove(thread_id, expected)
        if session is None:
            return False
        session.cleanup(error)
        logger.info(f"Session torn down: {thread_id}")
        return True

    @property
    def active_threads(self) -> List[str]:
        return list(self._sessions)

    def shutdown(self) -> None:
        for thread_id in list(self._sessions):
            self.teardown(thread_id)
