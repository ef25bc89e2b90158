"""Persistent metadata store and the cache layer on top of it.

The store is a plain key-value interface (``get``/``put``) over JSON values.
The cache treats every store failure as a miss and issues writes
fire-and-forget on a worker thread.
"""
import asyncio
import json
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Set

from loguru import logger

from .models import MoveShortcut

DURATIONS_KEY = "durations"
RATINGS_KEY = "ratings"
SHORTCUTS_KEY = "shortcuts"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def put(self, key: str, value: Any) -> None: ...


class MetadataStore:
    """SQLite-backed key-value store for cross-session metadata."""

    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = threading.local()
        self._ready = False

    @property
    def conn(self) -> sqlite3.Connection:
        if not hasattr(self._conn, "connection"):
            self._conn.connection = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.connection.execute("PRAGMA journal_mode = WAL;")
            self._conn.connection.execute("PRAGMA synchronous = NORMAL;")
        if not self._ready:
            self.ensure_schema()
        return self._conn.connection

    def ensure_schema(self) -> None:
        self._ready = True
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        self.conn.commit()

    def get(self, key: str) -> Optional[Any]:
        row = self.conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        return json.loads(row[0]) if row else None

    def put(self, key: str, value: Any) -> None:
        self.conn.execute(
            """INSERT INTO metadata (key, value) VALUES (?, ?)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value;""",
            (key, json.dumps(value)),
        )
        self.conn.commit()

    def close(self) -> None:
        if hasattr(self._conn, "connection"):
            self._conn.connection.close()
            del self._conn.connection


class MemoryStore:
    """In-process store used when persistence is disabled."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class MetadataCache:
    """Durations, ratings and move shortcuts, backed by a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._pending: Set[asyncio.Future] = set()
        # One writer thread keeps writes in issue order.
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="afm-store")

    def _get(self, key: str) -> Optional[Any]:
        try:
            return self.store.get(key)
        except Exception as e:
            logger.warning(f"Metadata load failed for {key!r}: {e}")
            return None

    def load_durations(self) -> Dict[str, float]:
        raw = self._get(DURATIONS_KEY)
        if not isinstance(raw, dict):
            return {}
        out: Dict[str, float] = {}
        for k, v in raw.items():
            try:
                out[str(k)] = max(0.0, float(v))
            except (TypeError, ValueError):
                continue
        return out

    def load_ratings(self) -> Dict[str, int]:
        raw = self._get(RATINGS_KEY)
        if not isinstance(raw, dict):
            return {}
        out: Dict[str, int] = {}
        for k, v in raw.items():
            try:
                out[str(k)] = min(5, max(0, int(v)))
            except (TypeError, ValueError):
                continue
        return out

    def load_shortcuts(self) -> List[MoveShortcut]:
        raw = self._get(SHORTCUTS_KEY)
        if not isinstance(raw, list):
            return []
        out: List[MoveShortcut] = []
        for item in raw:
            try:
                out.append(MoveShortcut.from_json(item))
            except (KeyError, TypeError):
                continue
        return out

    def _put_sync(self, key: str, value: Any) -> None:
        try:
            self.store.put(key, value)
        except Exception as e:
            logger.warning(f"Metadata save failed for {key!r}: {e}")

    def put(self, key: str, value: Any) -> None:
        """Issue a write without waiting for it; runs inline when no loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._put_sync(key, value)
            return
        fut = loop.run_in_executor(self._writer, self._put_sync, key, value)
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)

    def save_durations(self, durations: Dict[str, float]) -> None:
        self.put(DURATIONS_KEY, dict(durations))

    def save_ratings(self, ratings: Dict[str, int]) -> None:
        self.put(RATINGS_KEY, dict(ratings))

    def save_shortcuts(self, shortcuts: List[MoveShortcut]) -> None:
        self.put(SHORTCUTS_KEY, [s.to_json() for s in shortcuts])

    async def drain(self) -> None:
        """Wait for every outstanding write issued so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def close(self) -> None:
        self._writer.shutdown(wait=True)
