"""Facet bounds (size, duration, date) that scale the range filters."""
from __future__ import annotations

import math
import time
from dataclasses import replace
from typing import Dict, Optional, Sequence

from .models import Bounds, LibraryEntry, Range

DEFAULT_DURATION_MAX = 60.0
DEFAULT_SIZE_MAX = 100_000_000


def default_bounds(duration_max: float = DEFAULT_DURATION_MAX) -> Bounds:
    return Bounds(
        size=Range(0, DEFAULT_SIZE_MAX),
        duration=Range(0, duration_max),
        date=Range(0, int(time.time() * 1000)),
    )


def compute_bounds(
    files: Sequence[LibraryEntry],
    durations: Optional[Dict[str, float]] = None,
    previous: Optional[Bounds] = None,
    duration_max: float = DEFAULT_DURATION_MAX,
) -> Bounds:
    """Derive bounds from the current file population.

    Size and date follow the files exactly. The duration maximum starts at
    ``duration_max`` and only grows: it keeps ``previous.duration.max`` and
    covers any already-known duration of the current files.
    """
    if not files:
        return previous or default_bounds(duration_max)
    sizes = [f.size or 0 for f in files]
    dates = [f.last_modified or 0 for f in files]
    dmax = duration_max
    if previous is not None:
        dmax = max(dmax, previous.duration.max)
    if durations:
        known = [durations.get(f.id, 0.0) for f in files]
        if known:
            dmax = max(dmax, math.ceil(max(known)))
    return Bounds(
        size=Range(min(sizes), max(sizes)),
        duration=Range(0, dmax),
        date=Range(min(dates), max(dates)),
    )


def widen_duration(bounds: Bounds, duration: float) -> Bounds:
    """Return bounds whose duration max covers ``duration``; never narrows."""
    if duration <= bounds.duration.max:
        return bounds
    return replace(bounds, duration=Range(bounds.duration.min, max(bounds.duration.max, math.ceil(duration))))
