from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional

from ...logging_config import logger
from ...models import ObserverEvent


DEFAULT_CHANNEL_SIZE = 1000


class EventChannel:
    """Ordered, bounded queue of events for the UI collaborator.

    When full, the oldest event is dropped so intake never blocks.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_SIZE) -> None:
        self._queue: "asyncio.Queue[ObserverEvent]" = asyncio.Queue(maxsize=maxsize)

    def __len__(self) -> int:
        return self._queue.qsize()

    def publish(self, event: ObserverEvent) -> None:
        if self._queue.full():
            dropped = self._queue.get_nowait()
            logger.warning(
                "event channel full; dropping oldest event",
                extra={"kind": dropped.kind, "session_id": dropped.session_id},
            )
        self._queue.put_nowait(event)

    def drain(self) -> List[ObserverEvent]:
        events: List[ObserverEvent] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    async def next(self, timeout: Optional[float] = None) -> Optional[ObserverEvent]:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class InFlightSlot:
    """Holds at most one background reasoning call for a single concern."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def try_start(self, factory: Callable[[], Awaitable[None]]) -> bool:
        if self.busy:
            logger.debug("reasoning call in flight; cycle skipped", extra={"concern": self._name})
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("reasoning call skipped (no running event loop)", extra={"concern": self._name})
            return False
        self._task = loop.create_task(self._run(factory), name=f"reasoning-{self._name}")
        return True

    async def _run(self, factory: Callable[[], Awaitable[None]]) -> None:
        try:
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover - defensive
            logger.error(
                "reasoning worker failed",
                extra={"concern": self._name, "error": str(exc)},
            )

    def cancel(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        self._task = None

    async def wait(self) -> None:
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)


__all__ = ["DEFAULT_CHANNEL_SIZE", "EventChannel", "InFlightSlot"]
