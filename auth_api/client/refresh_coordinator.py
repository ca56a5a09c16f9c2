from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable


logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Single-flight wrapper around a token refresh.

    Callers arriving while a refresh is in flight wait on the same task instead
    of starting another one. A cancelled caller never cancels the shared task.
    The handle is released once the task settles, so the next expiry event
    starts a fresh refresh.
    """

    def __init__(self, refresh: Callable[[], Awaitable[None]]):
        self._refresh = refresh
        self._pending: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def refresh(self) -> None:
        if self._pending is None:
            logger.debug("refresh_coordinator: starting refresh")
            self._pending = asyncio.ensure_future(self._run())
            self._pending.add_done_callback(_retrieve_outcome)
        await asyncio.shield(self._pending)

    async def _run(self) -> None:
        try:
            await self._refresh()
        finally:
            self._pending = None


def _retrieve_outcome(task: asyncio.Task) -> None:
    # Marks the exception as retrieved when every waiter was cancelled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("refresh_coordinator: refresh_failed error=%s", exc)
