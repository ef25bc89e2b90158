"""Batch relocation of files into a target directory."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from loguru import logger

from .errors import MoveError
from .fs import DirectoryHandle
from .logging import truncate
from .models import LibraryEntry
from .scanner import parent_path


@dataclass
class MoveReport:
    moved: int = 0
    skipped: int = 0  # already in the target folder
    failed: List[Tuple[str, str]] = field(default_factory=list)  # (entry id, reason)


def _same_dir(a: object, b: object) -> bool:
    if a is None or b is None:
        return False
    if a is b:
        return True
    path = getattr(a, "path", None)
    return path is not None and path == getattr(b, "path", None)


async def move_one(entry: LibraryEntry, target: DirectoryHandle) -> bool:
    """Copy ``entry`` into ``target`` under the same name, then drop the original.

    Returns False without touching anything when ``target`` already holds the
    entry. Removal is best-effort: once the copy is written the move counts
    as done.
    """
    if not entry.is_file:
        raise MoveError(f"{entry.id}: only files can be moved")
    if _same_dir(entry.parent_handle, target):
        return False
    try:
        snap = await entry.handle.get_file()
        data = await snap.read_bytes()
        dest = await target.get_file_handle(entry.name, create=True)
        await dest.write_bytes(data)
    except Exception as e:
        raise MoveError(f"{entry.id}: {e}") from e
    if entry.parent_handle is not None:
        try:
            await entry.parent_handle.remove_entry(entry.name)
        except Exception as e:
            logger.debug(f"could not remove original {entry.id}: {e}")
    return True


async def move_many(entries: Iterable[LibraryEntry], target: LibraryEntry) -> MoveReport:
    """Move each file independently; one failure never stops the batch."""
    report = MoveReport()
    if not target.is_dir:
        raise MoveError(f"{target.id}: target is not a directory")
    for entry in entries:
        if not entry.is_file:
            continue
        if parent_path(entry.id) == target.id:
            report.skipped += 1
            continue
        try:
            moved = await move_one(entry, target.handle)
        except MoveError as e:
            logger.warning(f"Move failed: {e}")
            report.failed.append((entry.id, truncate(str(e), max_len=512, max_lines=3)))
            continue
        if moved:
            report.moved += 1
        else:
            report.skipped += 1
    logger.info(
        f"Moved {report.moved} file(s) to {target.id}, {report.skipped} already there, {len(report.failed)} failed"
    )
    return report
