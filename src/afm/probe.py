"""Bounded-time duration probe using mutagen."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from .errors import ProbeTimeout
from .fs import FileSnapshot

DurationProbe = Callable[[FileSnapshot], Awaitable[float]]


def read_duration(snap: FileSnapshot) -> float:
    """Return the stream length in seconds, or 0.0 when mutagen cannot tell."""
    import mutagen

    with snap.open() as fh:
        audio = mutagen.File(fh)
    if audio is None or audio.info is None:
        return 0.0
    length = getattr(audio.info, "length", 0.0) or 0.0
    return float(length) if length > 0 else 0.0


async def probe_duration(snap: FileSnapshot, timeout: float = 2.0) -> float:
    """Probe on a worker thread; raises ProbeTimeout once ``timeout`` elapses."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(read_duration, snap), timeout)
    except asyncio.TimeoutError as e:
        raise ProbeTimeout(f"{snap.name}: no duration after {timeout:.1f}s") from e


def make_probe(timeout: float) -> DurationProbe:
    async def _probe(snap: FileSnapshot) -> float:
        try:
            return await probe_duration(snap, timeout)
        except ProbeTimeout as e:
            logger.debug(str(e))
            return 0.0
        except Exception as e:
            logger.debug(f"Duration probe failed for {snap.name}: {e}")
            return 0.0

    return _probe
