"""Tree flattening and the virtualized row window for the nested browser."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import AbstractSet, List, Mapping, Optional, Sequence, Set, Tuple

from .filtering import entry_matches, sort_entries
from .models import ROOT_ID, FilterCriteria, LibraryEntry, SortSpec
from .search import matches

ROW_HEIGHT = 34
OVERSCAN = 10


@dataclass(frozen=True)
class FlatRow:
    entry: LibraryEntry
    depth: int
    is_expanded: bool = False

    @property
    def id(self) -> str:
        return self.entry.id


def flatten_tree(
    roots: Sequence[LibraryEntry],
    criteria: FilterCriteria,
    expanded: AbstractSet[str],
    spec: SortSpec,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> List[FlatRow]:
    """Flatten the filtered tree into display order.

    A directory's children are evaluated when it is expanded, or for every
    directory while a search/rating filter is active (everything is shown
    expanded then). A directory row appears when something below it matched,
    or when its own name matches the query and it is not the synthetic root.
    Matching children are sorted per directory with the flat-list comparator.
    """
    force_open = criteria.is_active()
    result: List[FlatRow] = []

    def visit(node: LibraryEntry, depth: int) -> None:
        if node.is_file:
            if entry_matches(node, criteria, durations, ratings):
                result.append(FlatRow(node, depth))
            return
        is_open = force_open or node.id in expanded
        mark = len(result)
        if is_open:
            for child in node.children or ():
                visit(child, depth + 1)
        has_matches = len(result) > mark
        if not has_matches and not (node.id != ROOT_ID and matches(node.name, criteria.search_query)):
            return
        below = result[mark:]
        del result[mark:]
        result.append(FlatRow(node, depth, is_open))
        if is_open:
            result.extend(_sort_level(below, spec, durations, ratings))

    for root in roots:
        visit(root, 0)
    return result


def _sort_level(
    rows: List[FlatRow],
    spec: SortSpec,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> List[FlatRow]:
    """Sort the direct children at one level, carrying each child's subtree rows along."""
    if not rows:
        return rows
    level = rows[0].depth
    groups: List[Tuple[FlatRow, List[FlatRow]]] = []
    for row in rows:
        if row.depth == level:
            groups.append((row, []))
        else:
            groups[-1][1].append(row)
    by_id = {g[0].entry.id: g for g in groups}
    ordered = sort_entries([g[0].entry for g in groups], spec, durations, ratings)
    out: List[FlatRow] = []
    for entry in ordered:
        head, tail = by_id[entry.id]
        out.append(head)
        out.extend(tail)
    return out


def visible_range(
    total: int,
    scroll_top: float,
    viewport_height: float,
    row_height: int = ROW_HEIGHT,
    overscan: int = OVERSCAN,
) -> Tuple[int, int]:
    """Half-open ``[start, end)`` row slice to render, clamped to the list."""
    start = min(total, max(0, math.floor(scroll_top / row_height) - overscan))
    end = min(total, math.ceil((scroll_top + viewport_height) / row_height) + overscan)
    return start, max(start, end)


def visible_rows(
    rows: Sequence[FlatRow],
    scroll_top: float,
    viewport_height: float,
    row_height: int = ROW_HEIGHT,
    overscan: int = OVERSCAN,
) -> Tuple[int, Sequence[FlatRow]]:
    start, end = visible_range(len(rows), scroll_top, viewport_height, row_height, overscan)
    return start, rows[start:end]


def center_offset(index: int, viewport_height: float, row_height: int = ROW_HEIGHT) -> float:
    """Scroll offset that centres row ``index`` in the viewport."""
    return max(0.0, index * row_height - viewport_height / 2 + row_height / 2)


def index_of(rows: Sequence[FlatRow], entry_id: str) -> Optional[int]:
    for i, row in enumerate(rows):
        if row.entry.id == entry_id:
            return i
    return None


def expand_ancestors(active_id: Optional[str], expanded: Set[str]) -> bool:
    """Add every ancestor path of ``active_id`` to ``expanded``; True if it changed."""
    if not active_id:
        return False
    parts = active_id.split("/")
    changed = False
    for i in range(1, len(parts)):
        parent = "/".join(parts[:i])
        if parent not in expanded:
            expanded.add(parent)
            changed = True
    return changed
