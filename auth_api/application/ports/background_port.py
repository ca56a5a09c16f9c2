from __future__ import annotations

from typing import Any, Callable, Protocol


class BackgroundDispatcherPort(Protocol):
    def fire_and_forget(self, label: str, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        """Run ``fn`` off the request path, at most once; failures are logged, never raised."""
        ...
