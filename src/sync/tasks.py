"""Tracked fire-and-forget tasks."""

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog


logger = structlog.get_logger()


class BackgroundTasks:
    """Detached tasks whose failures are logged and never propagate.

    Tasks are referenced until they finish so they cannot be garbage
    collected mid-flight, and can be awaited on shutdown.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self._log = logger.bind(component="tasks")

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[None]:
        """Schedule ``coro`` on the running loop without awaiting it.

        Args:
            coro: Work to run.
            name: Task name used in logs.

        Returns:
            The scheduled task.
        """
        task = asyncio.get_running_loop().create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            await coro
        except Exception as e:
            self._log.warning(
                "background_task_failed",
                task=name,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def wait_idle(self) -> None:
        """Wait until every task, including ones spawned meanwhile, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self, timeout: float | None = None) -> None:
        """Wait for outstanding tasks, cancelling whatever exceeds ``timeout``."""
        try:
            await asyncio.wait_for(self.wait_idle(), timeout=timeout)
        except TimeoutError:
            remaining = list(self._tasks)
            for task in remaining:
                task.cancel()
            await asyncio.gather(*remaining, return_exceptions=True)
            self._log.warning("background_tasks_cancelled", count=len(remaining))
