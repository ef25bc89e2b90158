"""Playback sequencer.

Owns the active entry and the play/pause/shuffle/loop state, and moves
through the current filtered list. Every ``play`` takes a new generation;
a load only commits its results while its generation is still current, so
overlapping user actions can never leave audio and UI state out of sync.
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, List, Optional, Protocol, Sequence, Set, Tuple

from loguru import logger

from .errors import AccessError, PlaybackAborted, StaleGeneration
from .models import LibraryEntry, PlaybackState, WaveformData
from .notices import NoticeBoard
from .scanner import mime_for
from .waveform import WAVEFORM_POINTS, Decoder, compute_peaks, random_gradient_hues, zero_crossing_hues


class TransientSource:
    """Playable in-memory source for one entry; exactly one is alive at a time."""

    def __init__(self, entry_id: str, mime: str, data: bytes) -> None:
        self.entry_id = entry_id
        self.mime = mime
        self.stream: Optional[BytesIO] = BytesIO(data)

    @property
    def released(self) -> bool:
        return self.stream is None

    def release(self) -> None:
        if self.stream is not None:
            self.stream.close()
            self.stream = None


class AudioOutput(Protocol):
    def load(self, source: TransientSource) -> None: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...


class NullOutput:
    """Headless output: accepts sources and tracks transport state only."""

    def __init__(self) -> None:
        self.source: Optional[TransientSource] = None
        self.playing = False

    def load(self, source: TransientSource) -> None:
        self.source = source
        self.playing = False

    async def play(self) -> None:
        if self.source is None or self.source.released:
            raise PlaybackAborted("no source loaded")
        self.playing = True

    def pause(self) -> None:
        self.playing = False


@dataclass
class SequencerOptions:
    waveform_points: int = WAVEFORM_POINTS
    randomize_gradient: bool = True
    color_waveform: bool = False
    skip_delay: float = 0.25


class PlaybackSequencer:
    def __init__(
        self,
        files: Callable[[], Sequence[LibraryEntry]],
        notices: NoticeBoard,
        output: Optional[AudioOutput] = None,
        decoder: Optional[Decoder] = None,
        options: Optional[SequencerOptions] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._files = files
        self.notices = notices
        self.output = output or NullOutput()
        self.decoder = decoder
        self.options = options or SequencerOptions()
        self.rng = rng or random.Random()
        self.state = PlaybackState()
        self.waveform: Optional[WaveformData] = None
        self.gradient_hues: Tuple[int, int] = (180, 240)
        self._source: Optional[TransientSource] = None
        self._auto_loaded = False
        self._failures = 0
        self._tasks: Set[asyncio.Task] = set()

    # -- generation -----------------------------------------------------

    def _check(self, generation: int) -> None:
        if generation != self.state.generation:
            raise StaleGeneration(generation, self.state.generation)

    def _release_source(self) -> None:
        if self._source is not None:
            self._source.release()
            self._source = None

    # -- loading --------------------------------------------------------

    async def play(self, entry: LibraryEntry, auto_start: bool = True) -> bool:
        """Load ``entry`` and optionally start it. Returns True if this load committed."""
        if not entry.is_file:
            return False
        self.state.generation += 1
        generation = self.state.generation
        try:
            if self.options.randomize_gradient:
                self.gradient_hues = random_gradient_hues(self.rng)
            try:
                snap = await entry.handle.get_file()
                data = await snap.read_bytes()
            except Exception as e:
                raise AccessError(f"could not access file system entry {entry.id!r}") from e
            self._check(generation)

            self._release_source()
            source = TransientSource(entry.id, mime_for(entry.name, snap.mime_hint), data)
            self._source = source
            self.state.active_id = entry.id
            self.waveform = None
            self.output.load(source)
            if auto_start:
                try:
                    await self.output.play()
                except PlaybackAborted as e:
                    logger.debug(f"playback start aborted for {entry.id}: {e}")
                else:
                    self._check(generation)
                    self.state.is_playing = True
            else:
                self.output.pause()
                self.state.is_playing = False
            self._check(generation)

            if self.decoder is None:
                self._failures = 0
                return True
            decoded = await asyncio.to_thread(self.decoder.decode, data)
            self._check(generation)
            channel = decoded.channel(0)
            points = compute_peaks(channel, self.options.waveform_points)
            colors = (
                tuple(zero_crossing_hues(channel, len(points)))
                if self.options.color_waveform
                else None
            )
            self.waveform = WaveformData(points=tuple(points), duration=decoded.duration, colors=colors)
            self._failures = 0
            return True
        except StaleGeneration as e:
            logger.trace(f"abandoned load of {entry.id}: {e}")
            return False
        except Exception as e:
            if generation != self.state.generation:
                return False
            logger.warning(f"Playback error for {entry.id}: {e}")
            self.notices.post(f"LOAD FAILED: {entry.name}", level="WARNING")
            self.waveform = None
            self._failures += 1
            # Stop skipping once every entry of the list has failed in a row.
            if auto_start and self._failures < len(self._files()):
                self._schedule_skip(entry.id)
            return False

    def _schedule_skip(self, failed_id: str) -> None:
        loop = asyncio.get_running_loop()

        def fire() -> None:
            self._spawn(self.advance(force=True, start=True, after=failed_id))

        loop.call_later(self.options.skip_delay, fire)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def settle(self, timeout: float = 5.0) -> None:
        """Wait until no follow-up loads (auto-skips) are outstanding."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
                continue
            await asyncio.sleep(self.options.skip_delay + 0.01)
            if not self._tasks:
                return

    # -- navigation -----------------------------------------------------

    def _index(self, files: Sequence[LibraryEntry], entry_id: Optional[str] = None) -> int:
        wanted = self.state.active_id if entry_id is None else entry_id
        for i, f in enumerate(files):
            if f.id == wanted:
                return i
        return -1

    def next_index(self, files: Sequence[LibraryEntry], after: Optional[str] = None) -> int:
        if self.state.is_random:
            return self.rng.randrange(len(files))
        return (self._index(files, after) + 1) % len(files)

    def prev_index(self, files: Sequence[LibraryEntry]) -> int:
        if self.state.is_random:
            return self.rng.randrange(len(files))
        return (self._index(files) - 1 + len(files)) % len(files)

    async def advance(
        self, force: bool = False, *, start: Optional[bool] = None, after: Optional[str] = None
    ) -> Optional[LibraryEntry]:
        """Move to the next entry of the filtered list.

        Natural end-of-track (``force=False``) replays when looping and
        always starts playback; a manual skip keeps the current play/pause
        state unless ``start`` says otherwise. ``after`` counts from that
        entry instead of the active one (skipping past a failed load).
        """
        files = list(self._files())
        if not files:
            return None
        idx = self._index(files)
        if not force and self.state.is_looping and idx >= 0:
            await self.play(files[idx], True)
            return files[idx]
        target = files[self.next_index(files, after)]
        should_play = (self.state.is_playing if force else True) if start is None else start
        await self.play(target, should_play)
        return target

    async def retreat(self) -> Optional[LibraryEntry]:
        files = list(self._files())
        if not files:
            return None
        target = files[self.prev_index(files)]
        await self.play(target, self.state.is_playing)
        return target

    async def on_track_ended(self) -> Optional[LibraryEntry]:
        return await self.advance(force=False)

    async def toggle_play(self) -> bool:
        if self._source is None:
            return False
        if self.state.is_playing:
            self.output.pause()
            self.state.is_playing = False
        else:
            try:
                await self.output.play()
                self.state.is_playing = True
            except PlaybackAborted as e:
                logger.debug(f"resume aborted: {e}")
        return self.state.is_playing

    def set_random(self, value: bool) -> None:
        self.state.is_random = value

    def set_looping(self, value: bool) -> None:
        self.state.is_looping = value

    # -- session --------------------------------------------------------

    async def auto_load_first(self) -> bool:
        """Load the first filtered entry, paused, once per session."""
        if self._auto_loaded:
            return False
        files: List[LibraryEntry] = list(self._files())
        if not files:
            return False
        self._auto_loaded = True
        return await self.play(files[0], False)

    def reset_session(self) -> None:
        self._auto_loaded = False

    def close(self) -> None:
        self.state.generation += 1
        self._release_source()
        self.state.active_id = None
        self.state.is_playing = False
        self.waveform = None
