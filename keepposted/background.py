"""Fire-and-forget helpers for writes the caller does not wait on.

Usage::

    from keepposted.background import BackgroundTasks

    tasks = BackgroundTasks()
    tasks.spawn(profiles.update_home(uid, name, coord), "profile_location_save", user_id=uid)

Failures are logged and swallowed: persistence errors never reach the
caller, which has already updated its local state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

logger = structlog.get_logger()


class BackgroundTasks:
    """Tracks spawned tasks so they are not garbage-collected mid-flight."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], event: str, **log_context) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro, event, log_context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro, event: str, log_context: dict):
        try:
            result = await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{event}_failed", error=str(e), exc_info=True, **log_context)
            return None
        logger.debug(f"{event}_done", **log_context)
        return result

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
