"""
Graph executor: drives a compiled workflow per thread id.

Owns suspension and resume. A run that reaches an interrupt-before node
leaves behind an ExecutionSnapshot; the first resume for that thread consumes
it and every later resume is rejected. Runs on the same thread id are
serialized, runs on different thread ids proceed concurrently.
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from langgraph.checkpoint.memory import MemorySaver
from langgraph.errors import GraphRecursionError
from langgraph.types import Command
from loguru import logger

from dataagent.graph.definition import GraphDefinition
from dataagent.graph.fragments import OutputFragment
from dataagent.utils.errors import SnapshotNotFoundError, StepLimitExceededError


@dataclass
class ExecutionSnapshot:
    """Paused run: state copy plus the node it is paused before"""
    thread_id: str
    state: Dict[str, Any]
    suspended_node: str
    checkpoint_key: str
    created_at: float = field(default_factory=time.time)


class GraphRun:
    """
    One execution (fresh start or resume) of the workflow.

    Iterate it to receive OutputFragments; once iteration ends, `state`
    holds the final (or paused) state and `suspended_node` tells whether
    the run stopped at an interrupt.
    """

    def __init__(self, executor: "GraphExecutor", thread_id: str, payload: Any, checkpoint_key: str):
        self._executor = executor
        self._payload = payload
        self.thread_id = thread_id
        self.checkpoint_key = checkpoint_key
        self.state: Dict[str, Any] = {}
        self.suspended_node: Optional[str] = None
        self.finished = False

    @property
    def suspended(self) -> bool:
        return self.suspended_node is not None

    def __aiter__(self) -> AsyncIterator[OutputFragment]:
        return self._drive()

    async def consume(self) -> Dict[str, Any]:
        """Run to the end discarding fragments; returns the final state"""
        async for _ in self:
            pass
        return self.state

    async def _drive(self) -> AsyncIterator[OutputFragment]:
        executor = self._executor
        config = executor._config(self.checkpoint_key)
        settled = False

        async with executor._thread_lock(self.thread_id):
            start = time.time()
            try:
                async for chunk in executor.graph.astream(self._payload, config, stream_mode="custom"):
                    if isinstance(chunk, OutputFragment):
                        yield chunk

                snapshot = await executor.graph.aget_state(config)
                self.state = dict(snapshot.values)
                if snapshot.next:
                    self.suspended_node = snapshot.next[0]
                    executor._snapshots[self.thread_id] = ExecutionSnapshot(
                        thread_id=self.thread_id,
                        state=dict(snapshot.values),
                        suspended_node=self.suspended_node,
                        checkpoint_key=self.checkpoint_key,
                    )
                    logger.info(f"[GRAPH] suspended | thread_id={self.thread_id} | before={self.suspended_node}")
                else:
                    await executor._release(self.checkpoint_key)
                    logger.info(
                        f"[GRAPH] completed | thread_id={self.thread_id} | "
                        f"duration_ms={int((time.time() - start) * 1000)}"
                    )
                settled = True
                self.finished = True
            except GraphRecursionError as e:
                logger.error(f"[GRAPH] step ceiling hit | thread_id={self.thread_id} | limit={executor.max_steps}")
                raise StepLimitExceededError(self.thread_id, executor.max_steps) from e
            finally:
                if not settled:
                    # Failed or cancelled runs leave nothing behind
                    await executor._release(self.checkpoint_key)


class GraphExecutor:
    """Runs a GraphDefinition with snapshot-based suspend/resume"""

    def __init__(self, definition: GraphDefinition, max_steps: int = 100, checkpointer: Optional[MemorySaver] = None):
        self.definition = definition
        self.max_steps = max_steps
        self._checkpointer = checkpointer or MemorySaver()
        self.graph = definition.compile(checkpointer=self._checkpointer)
        self._snapshots: Dict[str, ExecutionSnapshot] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def start(self, thread_id: str, inputs: Dict[str, Any]) -> GraphRun:
        """Begin a new run for a thread; any paused run on that thread is superseded"""
        stale = self._snapshots.pop(thread_id, None)
        if stale is not None:
            logger.info(f"[GRAPH] discarding paused run superseded by new input | thread_id={thread_id}")
            self._release_sync(stale.checkpoint_key)
        key = f"{thread_id}/{uuid.uuid4().hex[:12]}"
        logger.info(f"[GRAPH] run start | thread_id={thread_id} | checkpoint={key}")
        return GraphRun(self, thread_id, {**inputs, "thread_id": thread_id}, key)

    def resume(self, thread_id: str, feedback: Dict[str, Any]) -> GraphRun:
        """
        Re-enter a paused run at its suspended node.

        The snapshot is consumed here, before any await, so a concurrent or
        repeated resume of the same snapshot raises SnapshotNotFoundError.
        """
        snapshot = self._snapshots.pop(thread_id, None)
        if snapshot is None:
            raise SnapshotNotFoundError(thread_id)
        logger.info(f"[GRAPH] resume | thread_id={thread_id} | at={snapshot.suspended_node}")
        return GraphRun(self, thread_id, Command(resume=dict(feedback)), snapshot.checkpoint_key)

    async def invoke(self, inputs: Dict[str, Any], thread_id: Optional[str] = None) -> Dict[str, Any]:
        """Run to completion without streaming; returns the final state"""
        run = self.start(thread_id or f"invoke-{uuid.uuid4().hex[:8]}", inputs)
        return await run.consume()

    def snapshot(self, thread_id: str) -> Optional[ExecutionSnapshot]:
        return self._snapshots.get(thread_id)

    def has_snapshot(self, thread_id: str) -> bool:
        return thread_id in self._snapshots

    async def discard(self, thread_id: str) -> bool:
        """Drop a paused run; returns True if one existed"""
        snapshot = self._snapshots.pop(thread_id, None)
        if snapshot is None:
            return False
        await self._release(snapshot.checkpoint_key)
        logger.info(f"[GRAPH] discarded paused run | thread_id={thread_id}")
        return True

    def _config(self, checkpoint_key: str) -> Dict[str, Any]:
        return {"configurable": {"thread_id": checkpoint_key}, "recursion_limit": self.max_steps}

    @asynccontextmanager
    async def _thread_lock(self, thread_id: str):
        """Serialize runs on one thread id; the lock is dropped once nobody holds or awaits it"""
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = self._locks[thread_id] = asyncio.Lock()
        self._lock_users[thread_id] = self._lock_users.get(thread_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[thread_id] -= 1
            if self._lock_users[thread_id] == 0:
                del self._lock_users[thread_id]
                del self._locks[thread_id]

    async def _release(self, checkpoint_key: str) -> None:
        await self._checkpointer.adelete_thread(checkpoint_key)

    def _release_sync(self, checkpoint_key: str) -> None:
        self._checkpointer.delete_thread(checkpoint_key)
