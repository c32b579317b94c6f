"""Sink for non-critical side effects (stat increments, webhook dispatch).

Effects are attempted once in the background. A failure is logged with the
effect's name and never reaches the request that scheduled it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class NonCriticalEffects:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self.failures = 0

    def submit(self, name: str, effect: Awaitable[object]) -> Optional[asyncio.Task]:
        """Schedule ``effect`` without waiting for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop; drop the effect rather than fail the caller.
            logger.error("Dropped non-critical effect %s: no running event loop", name)
            if asyncio.iscoroutine(effect):
                effect.close()
            self.failures += 1
            return None
        task = loop.create_task(self._run(name, effect))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, effect: Awaitable[object]) -> None:
        try:
            await effect
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failures += 1
            logger.error("Non-critical effect %s failed", name, exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding effects (shutdown, tests)."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d non-critical effects still running at drain", len(pending))
