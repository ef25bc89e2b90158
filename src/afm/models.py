"""Value types shared across the library core.

Trees are immutable snapshots: a scan produces a fresh tree, consumers never
mutate entries in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple

ROOT_ID = "root"


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class LibraryEntry:
    """One node of the library tree.

    Files carry ``size``/``last_modified``/``mime_hint``; directories carry
    ``children``. ``id`` is a path-like key (``"root"`` for the synthetic root)
    and is the only join key used by durations, ratings, selection and playback.
    """

    id: str
    name: str
    kind: EntryKind
    handle: Any = field(default=None, compare=False, repr=False)
    # Only used to remove the original after a move.
    parent_handle: Any = field(default=None, compare=False, repr=False)
    size: Optional[int] = None
    last_modified: Optional[int] = None  # epoch millis
    mime_hint: Optional[str] = None
    children: Optional[Tuple["LibraryEntry", ...]] = None

    def __post_init__(self) -> None:
        if self.kind is EntryKind.FILE:
            if self.children is not None:
                raise ValueError(f"file entry {self.id!r} cannot have children")
        elif self.size is not None or self.mime_hint is not None or self.last_modified is not None:
            raise ValueError(f"directory entry {self.id!r} cannot carry file attributes")
        elif self.children is None:
            object.__setattr__(self, "children", ())

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True)
class Range:
    min: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


FULL_RANGE = Range(float("-inf"), float("inf"))


@dataclass(frozen=True)
class FilterCriteria:
    """Read-only snapshot consumed identically by the flat list and the tree view."""

    search_query: str = ""
    size_range: Range = FULL_RANGE
    duration_range: Range = FULL_RANGE
    date_range: Range = FULL_RANGE
    min_rating: int = 0

    def is_active(self) -> bool:
        """Search or rating filter in effect (forces tree directories open)."""
        return bool(self.search_query.strip()) or self.min_rating > 0

    def with_bounds(self, bounds: "Bounds") -> "FilterCriteria":
        return replace(
            self,
            size_range=bounds.size,
            duration_range=bounds.duration,
            date_range=bounds.date,
        )


SortKey = Literal["name", "size", "type", "date", "duration", "rating"]
SortOrder = Literal["asc", "desc"]
SORT_KEYS: Tuple[str, ...] = ("name", "size", "type", "date", "duration", "rating")


@dataclass(frozen=True)
class SortSpec:
    key: SortKey = "name"
    order: SortOrder = "asc"

    def __post_init__(self) -> None:
        if self.key not in SORT_KEYS:
            raise ValueError(f"unknown sort key: {self.key}")
        if self.order not in ("asc", "desc"):
            raise ValueError(f"unknown sort order: {self.order}")

    def clicked(self, key: SortKey) -> "SortSpec":
        """Same key flips the order; a new key starts ascending."""
        if key == self.key:
            return SortSpec(key, "desc" if self.order == "asc" else "asc")
        return SortSpec(key, "asc")


@dataclass(frozen=True)
class Bounds:
    size: Range
    duration: Range
    date: Range


@dataclass
class PlaybackState:
    active_id: Optional[str] = None
    is_playing: bool = False
    is_random: bool = False
    is_looping: bool = False
    generation: int = 0


@dataclass(frozen=True)
class WaveformData:
    points: Tuple[float, ...]
    duration: float
    colors: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class MoveShortcut:
    key: str
    target_path: str

    def to_json(self) -> Dict[str, str]:
        return {"key": self.key, "targetPath": self.target_path}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MoveShortcut":
        return cls(key=str(data["key"]), target_path=str(data.get("targetPath", "")))
