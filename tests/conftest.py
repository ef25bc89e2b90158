"""In-memory file-system handles for driving the async core in tests."""
import asyncio
from typing import Dict, List, Optional

import pytest

from afm.errors import AccessError, ScanError
from afm.fs import FileSnapshot
from afm.models import EntryKind


class FakeFile:
    kind = EntryKind.FILE

    def __init__(self, name: str, data: bytes = b"", mtime: int = 0, *, fail: bool = False, delay: float = 0.0):
        self.name = name
        self.data = data
        self.mtime = mtime
        self.fail = fail
        self.delay = delay
        self.reads = 0

    async def get_file(self) -> FileSnapshot:
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise AccessError(f"{self.name}: unreadable")
        return FileSnapshot(
            name=self.name,
            size=len(self.data),
            mime_hint="",
            last_modified=self.mtime,
            data=self.data,
        )

    async def write_bytes(self, data: bytes) -> None:
        self.data = data


class FakeDir:
    kind = EntryKind.DIRECTORY

    def __init__(self, name: str, children: Optional[List[object]] = None, *, fail: bool = False):
        self.name = name
        self.children: List[object] = list(children or [])
        self.fail = fail

    def _by_name(self) -> Dict[str, object]:
        return {c.name: c for c in self.children}

    async def entries(self):
        if self.fail:
            raise ScanError(f"{self.name}: permission denied")
        return list(self.children)

    async def get_file_handle(self, name: str, *, create: bool = False):
        existing = self._by_name().get(name)
        if existing is not None:
            return existing
        if not create:
            raise AccessError(name)
        f = FakeFile(name)
        self.children.append(f)
        return f

    async def remove_entry(self, name: str) -> None:
        self.children = [c for c in self.children if c.name != name]


class RecordingStore:
    def __init__(self, data: Optional[dict] = None, *, fail: bool = False):
        self.data = dict(data or {})
        self.puts: List[str] = []
        self.fail = fail

    def get(self, key):
        if self.fail:
            raise OSError("store offline")
        return self.data.get(key)

    def put(self, key, value):
        if self.fail:
            raise OSError("store offline")
        self.puts.append(key)
        self.data[key] = value


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def fast_settings():
    from afm.config import AfmSettings

    return AfmSettings(
        store_enable=False,
        enrich_yield_s=0.0,
        skip_delay_s=0.01,
        search_debounce_s=0.05,
        randomize_gradient_on_load=False,
    )
