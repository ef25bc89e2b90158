"""Transient, auto-clearing user notices."""
from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from loguru import logger

DEFAULT_TTL = 3.0


class NoticeBoard:
    """Holds at most one message; each post replaces the previous one.

    A clear scheduled for an older message never removes a newer one.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL, on_change: Optional[Callable[[Optional[str]], None]] = None):
        self.default_ttl = default_ttl
        self.current: Optional[str] = None
        self.history: List[str] = []
        self._on_change = on_change
        self._seq = 0
        self._timer: Optional[asyncio.TimerHandle] = None

    def post(self, message: str, ttl: Optional[float] = None, *, level: str = "INFO") -> None:
        logger.log(level, f"notice: {message}")
        self._seq += 1
        seq = self._seq
        self.current = message
        self.history.append(message)
        self._emit()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self.default_ttl if ttl is None else ttl, self._expire, seq)

    def _expire(self, seq: int) -> None:
        if seq != self._seq:
            return
        self._timer = None
        self.current = None
        self._emit()

    def clear(self) -> None:
        self._seq += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.current = None
        self._emit()

    def _emit(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.current)
        except Exception as e:
            logger.debug(f"notice listener failed: {e}")
