"""Error taxonomy for the library core.

None of these are fatal to the process: scan and probe failures degrade
silently, access/decode/move/export failures surface as transient notices,
and stale playback generations are abandoned without a trace.
"""
from __future__ import annotations


class AfmError(Exception):
    """Base class for all library-core errors."""


class ScanError(AfmError):
    """A directory could not be enumerated; its subtree is treated as empty."""


class ProbeTimeout(AfmError):
    """Duration probe ran past its time limit; the duration stays unknown."""


class AccessError(AfmError):
    """A file could not be opened or read."""


class DecodeError(AfmError):
    """Raw bytes could not be decoded to samples."""


class MoveError(AfmError):
    """A single entry could not be relocated."""


class ExportError(AfmError):
    """Export listing could not be written."""


class StaleGeneration(AfmError):
    """A playback load was superseded by a newer one."""

    def __init__(self, started: int, current: int) -> None:
        super().__init__(f"generation {started} superseded by {current}")
        self.started = started
        self.current = current


class PlaybackAborted(AfmError):
    """The audio output aborted a playback start (benign, e.g. interrupted by a newer load)."""
