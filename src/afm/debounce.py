"""Timer-reset debounce on the running event loop."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional


class Debouncer:
    """Each ``schedule`` call replaces any pending one; only the last fires after ``delay``."""

    def __init__(self, delay: float, callback: Callable[[Any], None]) -> None:
        self.delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, value: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, value)

    def _fire(self, value: Any) -> None:
        self._handle = None
        self._callback(value)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
