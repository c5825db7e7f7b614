"""
Bounded worker pool for blocking relational operations.

Slow SQL and schema introspection run here so they never block the event
loop that drives the streaming pipeline. One pool per process, injected.
"""

import asyncio
import functools
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from loguru import logger

POOL_FLOOR = 4
POOL_CEILING = 16


def default_pool_size(cpu_count: Optional[int] = None) -> int:
    """2x hardware threads, clamped to [4, 16]"""
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    return max(POOL_FLOOR, min(2 * cpus, POOL_CEILING))


class WorkerPool:
    def __init__(self, size: Optional[int] = None, thread_name_prefix: str = "db-operation-"):
        self.size = size or default_pool_size()
        self._executor = ThreadPoolExecutor(max_workers=self.size, thread_name_prefix=thread_name_prefix)
        self._closed = False
        self._lock = threading.Lock()
        logger.info(f"Worker pool started: size={self.size} prefix={thread_name_prefix}")

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking call on the pool and await its result"""
        if self._closed:
            raise RuntimeError("Worker pool is shut down")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args, **kwargs))

    def shutdown(self, timeout: float = 60.0) -> bool:
        """
        Drain queued work for up to `timeout` seconds, then cancel what is left.

        Returns True when the pool drained in time. Calling it again is a no-op.
        """
        with self._lock:
            if self._closed:
                return True
            self._closed = True

        logger.info(f"Worker pool shutting down, waiting up to {timeout}s to drain")
        drainer = threading.Thread(target=self._executor.shutdown, kwargs={"wait": True}, daemon=True)
        drainer.start()
        drainer.join(timeout)
        if drainer.is_alive():
            logger.warning("Worker pool did not drain in time, cancelling queued tasks")
            self._executor.shutdown(wait=False, cancel_futures=True)
            return False
        logger.info("Worker pool drained")
        return True
