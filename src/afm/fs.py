"""Local file-system capability.

Directory handles enumerate their children in a stable order; file handles
expose a snapshot (size, mime hint, mtime, bytes) and, for writable targets,
create+write+close. Blocking I/O runs on a worker thread so the event loop
stays responsive.
"""
from __future__ import annotations

import asyncio
import mimetypes
import os
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, List, Optional, Protocol, Union, runtime_checkable

from .errors import AccessError, ScanError
from .models import EntryKind


@dataclass(frozen=True)
class FileSnapshot:
    name: str
    size: int
    mime_hint: str
    last_modified: int  # epoch millis
    path: Optional[Path] = None
    data: Optional[bytes] = None

    def open(self) -> BinaryIO:
        """Open the underlying bytes for synchronous readers (e.g. mutagen)."""
        if self.data is not None:
            return BytesIO(self.data)
        if self.path is None:
            raise AccessError(f"{self.name}: no backing data")
        return self.path.open("rb")

    async def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise AccessError(f"{self.name}: no backing data")
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise AccessError(f"{self.name}: {e}") from e


@runtime_checkable
class FileHandle(Protocol):
    name: str
    kind: EntryKind

    async def get_file(self) -> FileSnapshot: ...

    async def write_bytes(self, data: bytes) -> None: ...


@runtime_checkable
class DirectoryHandle(Protocol):
    name: str
    kind: EntryKind

    async def entries(self) -> List[Union["DirectoryHandle", FileHandle]]: ...

    async def get_file_handle(self, name: str, *, create: bool = False) -> FileHandle: ...

    async def remove_entry(self, name: str) -> None: ...


class LocalFileHandle:
    kind = EntryKind.FILE

    def __init__(self, path: Path) -> None:
        self.path = path
        self.name = path.name

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"

    def _snapshot(self) -> FileSnapshot:
        st = self.path.stat()
        return FileSnapshot(
            name=self.name,
            size=st.st_size,
            mime_hint=mimetypes.guess_type(self.name)[0] or "",
            last_modified=st.st_mtime_ns // 1_000_000,
            path=self.path,
        )

    async def get_file(self) -> FileSnapshot:
        try:
            return await asyncio.to_thread(self._snapshot)
        except OSError as e:
            raise AccessError(f"{self.path}: {e}") from e

    async def write_bytes(self, data: bytes) -> None:
        await asyncio.to_thread(self.path.write_bytes, data)


class LocalDirectoryHandle:
    kind = EntryKind.DIRECTORY

    def __init__(self, path: Path) -> None:
        self.path = path
        self.name = path.name or str(path)

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({str(self.path)!r})"

    def _list(self) -> List[Union["LocalDirectoryHandle", LocalFileHandle]]:
        out: List[Union[LocalDirectoryHandle, LocalFileHandle]] = []
        with os.scandir(self.path) as it:
            for de in sorted(it, key=lambda d: d.name):
                p = Path(de.path)
                if de.is_dir(follow_symlinks=False):
                    out.append(LocalDirectoryHandle(p))
                elif de.is_file():
                    out.append(LocalFileHandle(p))
        return out

    async def entries(self) -> List[Union["LocalDirectoryHandle", LocalFileHandle]]:
        try:
            return await asyncio.to_thread(self._list)
        except OSError as e:
            raise ScanError(f"{self.path}: {e}") from e

    async def get_file_handle(self, name: str, *, create: bool = False) -> LocalFileHandle:
        p = self.path / name
        if not create and not p.is_file():
            raise AccessError(f"{p}: not found")
        return LocalFileHandle(p)

    async def remove_entry(self, name: str) -> None:
        await asyncio.to_thread((self.path / name).unlink)


def open_directory(path: Union[str, Path]) -> LocalDirectoryHandle:
    p = Path(path).expanduser().resolve()
    if not p.is_dir():
        raise AccessError(f"not a directory: {p}")
    return LocalDirectoryHandle(p)
