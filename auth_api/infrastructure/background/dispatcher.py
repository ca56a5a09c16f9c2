from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from auth_api.application.ports.background_port import BackgroundDispatcherPort


logger = logging.getLogger(__name__)


class ThreadPoolBackgroundDispatcher(BackgroundDispatcherPort):
    """Runs side effects (SMS, email, compensating deletes) off the request path.

    Each task runs at most once. Failures are logged with the task label and
    never reach the caller. Work still queued at shutdown is dropped.
    """

    def __init__(self, *, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="auth-background",
        )
        self._shutdown = False

    def fire_and_forget(self, label: str, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        def _run() -> None:
            try:
                fn(*args, **kwargs)
            except Exception:
                logger.exception("background_dispatcher: task_failed task=%s", label)

        try:
            self._executor.submit(_run)
        except RuntimeError:
            logger.warning("background_dispatcher: task_dropped task=%s reason=shutdown", label)

    def shutdown(self, *, wait: bool = False) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
        logger.info("background_dispatcher: shutdown wait=%s", wait)
