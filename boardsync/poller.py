"""
Periodic refresh loop feeding external sync.

Each tick fetches the external collection and offers it to the controller.
The controller decides whether to apply it (value changed, no drag active).
"""
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from .schema import Card
from .session import DragSessionController

logger = logging.getLogger(__name__)

FetchCallback = Callable[[], Union[Iterable[Card], Awaitable[Iterable[Card]]]]


class BoardPoller:
    """Polls `fetch` every `interval` seconds and refreshes the controller."""

    def __init__(self, fetch: FetchCallback, controller: DragSessionController, interval: float = 15.0):
        self.fetch = fetch
        self.controller = controller
        self.interval = interval
        self.failures = 0
        self._stopped = asyncio.Event()

    async def poll_once(self) -> bool:
        """One fetch + refresh. Returns True if the working set was replaced."""
        try:
            result: Any = self.fetch()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self.failures += 1
            logger.warning(f"Board refetch failed, using last known state: {e}")
            return False
        return self.controller.refresh(result)

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """Poll until stop() is called (or `max_ticks` polls have run)."""
        ticks = 0
        while not self._stopped.is_set():
            await self.poll_once()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stopped.set()
