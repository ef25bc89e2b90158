"""Filter predicate and comparator shared by the flat list and the tree view."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from .models import FilterCriteria, LibraryEntry, SortSpec
from .search import matches


def entry_matches(
    entry: LibraryEntry,
    criteria: FilterCriteria,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> bool:
    """Search, size, duration, date and rating predicates for a single file.

    Unknown durations count as 0, the same as a measured empty file.
    """
    duration = durations.get(entry.id, 0) or 0
    rating = ratings.get(entry.id, 0) or 0
    return (
        matches(entry.name, criteria.search_query)
        and criteria.size_range.contains(entry.size or 0)
        and criteria.duration_range.contains(duration)
        and criteria.date_range.contains(entry.last_modified or 0)
        and rating >= criteria.min_rating
    )


def sort_value(
    entry: LibraryEntry,
    key: str,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> Any:
    if key == "name":
        return entry.name.lower()
    if key == "type":
        return (entry.mime_hint or "").lower()
    if key == "date":
        return entry.last_modified or 0
    if key == "duration":
        return durations.get(entry.id, 0) or 0
    if key == "rating":
        return ratings.get(entry.id, 0) or 0
    return getattr(entry, key, 0) or 0


def sort_entries(
    entries: Iterable[LibraryEntry],
    spec: SortSpec,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> List[LibraryEntry]:
    """Stable sort; ties keep input order in both directions."""
    return sorted(
        entries,
        key=lambda e: sort_value(e, spec.key, durations, ratings),
        reverse=spec.order == "desc",
    )


def filter_files(
    files: Iterable[LibraryEntry],
    criteria: FilterCriteria,
    spec: SortSpec,
    durations: Dict[str, float],
    ratings: Dict[str, int],
) -> List[LibraryEntry]:
    """Sorted, filtered flat list: the playback order."""
    ordered = sort_entries(files, spec, durations, ratings)
    return [f for f in ordered if entry_matches(f, criteria, durations, ratings)]
