"""Library scanner: walk a directory handle into an immutable entry tree."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from .errors import AccessError, ScanError
from .fs import DirectoryHandle, FileHandle
from .models import ROOT_ID, EntryKind, LibraryEntry

AUDIO_EXTENSIONS = frozenset({".wav", ".mp3", ".aif", ".aiff", ".flac", ".ogg", ".m4a", ".aac"})

_MIME_BY_EXT = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "aif": "audio/aiff",
    "aiff": "audio/aiff",
    "flac": "audio/flac",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
}


def is_audio_name(name: str) -> bool:
    lower = name.lower()
    return any(lower.endswith(ext) for ext in AUDIO_EXTENSIONS)


def mime_for(name: str, hint: Optional[str] = None) -> str:
    """Playable mime type: trust a specific ``audio/*`` hint, else go by extension."""
    if hint and len(hint) > 5 and hint.startswith("audio/"):
        return hint
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return _MIME_BY_EXT.get(ext, "audio/wav")


async def scan_directory(handle: DirectoryHandle, path: str = "") -> Tuple[LibraryEntry, ...]:
    """Depth-first scan of ``handle``; ids are slash-joined paths relative to the root.

    Non-audio files are dropped. Directories are kept even when empty. A
    failure anywhere in this directory's enumeration leaves it with whatever
    was collected before the failure, never aborting the caller's scan.
    """
    items: List[LibraryEntry] = []
    try:
        for child in await handle.entries():
            full = f"{path}/{child.name}" if path else child.name
            if child.kind is EntryKind.FILE:
                if not is_audio_name(child.name):
                    continue
                snap = await child.get_file()
                items.append(LibraryEntry(
                    id=full,
                    name=child.name,
                    kind=EntryKind.FILE,
                    handle=child,
                    parent_handle=handle,
                    size=snap.size,
                    last_modified=snap.last_modified,
                    mime_hint=snap.mime_hint,
                ))
            elif child.kind is EntryKind.DIRECTORY:
                items.append(LibraryEntry(
                    id=full,
                    name=child.name,
                    kind=EntryKind.DIRECTORY,
                    handle=child,
                    parent_handle=handle,
                    children=await scan_directory(child, full),
                ))
    except (ScanError, AccessError) as e:
        logger.warning(f"Scan error under {path or handle.name!r}: {e}")
    return tuple(items)


async def scan_library(root: DirectoryHandle) -> LibraryEntry:
    """Scan ``root`` and wrap the result in the synthetic ``"root"`` entry."""
    children = await scan_directory(root)
    return LibraryEntry(id=ROOT_ID, name=root.name, kind=EntryKind.DIRECTORY, handle=root, children=children)


@dataclass
class _Folder:
    id: str
    name: str
    children: List[object]

    def freeze(self) -> LibraryEntry:
        frozen = tuple(c.freeze() if isinstance(c, _Folder) else c for c in self.children)
        return LibraryEntry(id=self.id, name=self.name, kind=EntryKind.DIRECTORY, children=frozen)


async def build_tree_from_files(
    label: str, files: Iterable[Tuple[str, FileHandle]]
) -> Tuple[LibraryEntry, List[LibraryEntry]]:
    """Build a root tree from uploaded ``(relative_path, handle)`` pairs.

    The first path segment names the uploaded folder itself and is not
    materialized. Returns the root entry and the flat list of file entries in
    upload order.
    """
    root = _Folder(ROOT_ID, label, [])
    folders: Dict[str, _Folder] = {}
    file_list: List[LibraryEntry] = []
    for rel_path, handle in files:
        name = rel_path.rsplit("/", 1)[-1]
        if not is_audio_name(name):
            continue
        parts = rel_path.split("/")
        level = root
        for j in range(1, len(parts) - 1):
            folder_id = "/".join(parts[: j + 1])
            folder = folders.get(folder_id)
            if folder is None:
                folder = _Folder(folder_id, parts[j], [])
                folders[folder_id] = folder
                level.children.append(folder)
            level = folder
        try:
            snap = await handle.get_file()
        except AccessError as e:
            logger.warning(f"Import skipped {rel_path!r}: {e}")
            continue
        entry = LibraryEntry(
            id=rel_path or name,
            name=name,
            kind=EntryKind.FILE,
            handle=handle,
            size=snap.size,
            last_modified=snap.last_modified,
            mime_hint=snap.mime_hint,
        )
        level.children.append(entry)
        file_list.append(entry)
    return root.freeze(), file_list


def collect(root: LibraryEntry) -> Tuple[List[LibraryEntry], List[LibraryEntry]]:
    """Flatten a tree into (files, folders) in depth-first order, root excluded."""
    files: List[LibraryEntry] = []
    folders: List[LibraryEntry] = []

    def walk(nodes: Sequence[LibraryEntry]) -> None:
        for node in nodes:
            if node.is_file:
                files.append(node)
            else:
                folders.append(node)
                walk(node.children or ())

    walk(root.children or ())
    return files, folders


def find_entry(nodes: Sequence[LibraryEntry], entry_id: str) -> Optional[LibraryEntry]:
    for node in nodes:
        if node.id == entry_id:
            return node
        if node.children:
            found = find_entry(node.children, entry_id)
            if found is not None:
                return found
    return None


def folder_children(root: Optional[LibraryEntry], path: str) -> Tuple[LibraryEntry, ...]:
    if root is None:
        return ()
    if path == ROOT_ID:
        return root.children or ()
    node = find_entry([root], path)
    return (node.children or ()) if node is not None else ()


def parent_path(path: str) -> str:
    if path == ROOT_ID or "/" not in path:
        return ROOT_ID
    return path.rsplit("/", 1)[0]
