from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from ...errors import SummarizationError
from ...logging_config import logger


class SummarizationScheduler:
    """Coalesces summarization requests into a single background worker.

    Requests made while a pass is running are folded into one follow-up pass.
    ``cancel()`` drops anything queued and stops the running pass.
    """

    def __init__(self, job: Callable[[], Awaitable[object]], *, name: str = "summarization") -> None:
        self._job = job
        self._name = name
        self._pending = False
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def schedule(self) -> None:
        """Schedule a background pass if not already queued."""
        self._pending = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("summarization skipped (no running event loop)")
            return

        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run_worker(), name=self._name)

    async def _run_worker(self) -> None:
        if self._running:
            return

        self._running = True
        try:
            while self._pending:
                self._pending = False
                try:
                    await self._job()
                except SummarizationError as exc:
                    logger.warning(
                        "summarization skipped; will retry at next trigger",
                        extra={"error": str(exc)},
                    )
        finally:
            self._running = False

    async def wait_idle(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await task

    def cancel(self) -> None:
        self._pending = False
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        self._task = None


__all__ = ["SummarizationScheduler"]
