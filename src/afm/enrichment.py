"""Background duration enrichment.

A single cooperative worker drains a FIFO of files with no cached duration.
Each probe is time-bounded; results are flushed to the shared duration map
and persisted in batches, with a cooperative pause after every flush so
interactive work is never starved.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Mapping, Optional

from loguru import logger

from .models import LibraryEntry
from .probe import DurationProbe, make_probe
from .store import MetadataCache


class EnrichmentQueue:
    def __init__(
        self,
        durations: Dict[str, float],
        cache: MetadataCache,
        probe: Optional[DurationProbe] = None,
        *,
        batch_size: int = 20,
        flush_interval: float = 0.5,
        yield_s: float = 0.1,
        probe_timeout: float = 2.0,
        on_duration: Optional[Callable[[float], None]] = None,
        on_flush: Optional[Callable[[Dict[str, float]], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.durations = durations
        self.cache = cache
        self.probe = probe or make_probe(probe_timeout)
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.yield_s = yield_s
        self.on_duration = on_duration
        self.on_flush = on_flush
        self.clock = clock
        self.pending: Deque[LibraryEntry] = deque()
        self.is_enriching = False
        self.flushes = 0
        self._task: Optional[asyncio.Task] = None

    def seed(self, files: Iterable[LibraryEntry], cached: Optional[Mapping[str, float]] = None) -> int:
        """Replace the pending list with files that have no cached duration."""
        cached = self.durations if cached is None else cached
        self.pending.clear()
        self.pending.extend(f for f in files if f.is_file and not cached.get(f.id))
        logger.debug(f"enrichment seeded with {len(self.pending)} file(s)")
        return len(self.pending)

    def start(self) -> Optional[asyncio.Task]:
        """Kick off a background pass unless one is running or there is nothing to do."""
        running = self._task is not None and not self._task.done()
        if running or self.is_enriching or not self.pending:
            return None
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self) -> None:
        """Drop pending work; a running pass ends after its current item."""
        self.pending.clear()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def run(self) -> int:
        """Drain the queue; returns the number of durations found in this pass."""
        if self.is_enriching:
            return 0
        self.is_enriching = True
        found = 0
        batch: Dict[str, float] = {}
        last_flush = self.clock()
        try:
            while self.pending:
                entry = self.pending.popleft()
                try:
                    snap = await entry.handle.get_file()
                    duration = await self.probe(snap)
                except Exception as e:
                    logger.debug(f"Enrichment skipped {entry.id}: {e}")
                    duration = 0.0
                if duration > 0:
                    batch[entry.id] = duration
                    found += 1
                    if self.on_duration is not None:
                        self.on_duration(duration)

                now = self.clock()
                if (
                    len(batch) >= self.batch_size
                    or (batch and now - last_flush > self.flush_interval)
                    or not self.pending
                ):
                    self._flush(batch)
                    batch = {}
                    last_flush = now
                    await asyncio.sleep(self.yield_s)
        finally:
            self.is_enriching = False
        logger.info(f"Enrichment pass done: {found} duration(s) found")
        return found

    def _flush(self, batch: Dict[str, float]) -> None:
        self.durations.update(batch)
        self.cache.save_durations(self.durations)
        self.flushes += 1
        if self.on_flush is not None:
            self.on_flush(batch)
