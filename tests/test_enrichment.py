import asyncio

from conftest import FakeDir, FakeFile, RecordingStore

from afm.bounds import compute_bounds, default_bounds, widen_duration
from afm.enrichment import EnrichmentQueue
from afm.models import EntryKind, LibraryEntry
from afm.session import LibrarySession
from afm.store import DURATIONS_KEY, MetadataCache


def _entry(name: str, handle=None) -> LibraryEntry:
    return LibraryEntry(
        id=name,
        name=name,
        kind=EntryKind.FILE,
        handle=handle or FakeFile(name, b"x"),
        size=1,
        last_modified=0,
        mime_hint="",
    )


def _probe_by_name(table, default=1.5):
    async def probe(snap):
        return table.get(snap.name, default)

    return probe


def test_batches_flush_and_persist():
    store = RecordingStore()
    cache = MetadataCache(store)
    durations = {}
    files = [_entry(f"t{i:02d}.wav") for i in range(25)]
    q = EnrichmentQueue(
        durations, cache, _probe_by_name({}), batch_size=20, flush_interval=60, yield_s=0, clock=lambda: 0.0
    )

    async def go():
        assert q.seed(files) == 25
        found = await q.run()
        await cache.drain()
        return found

    try:
        found = asyncio.run(go())
    finally:
        cache.close()
    assert found == 25
    assert q.flushes == 2
    assert store.puts == [DURATIONS_KEY, DURATIONS_KEY]
    assert len(store.data[DURATIONS_KEY]) == 25
    assert durations["t00.wav"] == 1.5


def test_elapsed_interval_forces_flush():
    ticks = iter(range(100))
    cache = MetadataCache(RecordingStore())
    q = EnrichmentQueue({}, cache, _probe_by_name({}), batch_size=50, flush_interval=0.5, yield_s=0,
                        clock=lambda: float(next(ticks)))
    q.seed([_entry(f"{i}.wav") for i in range(3)])
    try:
        asyncio.run(q.run())
    finally:
        cache.close()
    # Every item sees one elapsed tick, so each is flushed on its own.
    assert q.flushes == 3


def test_failures_are_skipped_and_cached_files_not_reprobed():
    cache = MetadataCache(RecordingStore())
    durations = {"known.wav": 9.0}
    probed = []

    async def probe(snap):
        probed.append(snap.name)
        return {"zero.wav": 0.0}.get(snap.name, 2.0)

    files = [
        _entry("known.wav"),
        _entry("broken.wav", FakeFile("broken.wav", fail=True)),
        _entry("zero.wav"),
        _entry("ok.wav"),
    ]
    q = EnrichmentQueue(durations, cache, probe, yield_s=0)
    q.seed(files)
    try:
        found = asyncio.run(q.run())
    finally:
        cache.close()
    assert found == 1
    assert probed == ["zero.wav", "ok.wav"]
    assert durations == {"known.wav": 9.0, "ok.wav": 2.0}


def test_second_start_while_running_is_a_no_op():
    cache = MetadataCache(RecordingStore())
    q = EnrichmentQueue({}, cache, _probe_by_name({}), yield_s=0)

    async def go():
        q.seed([_entry("a.wav"), _entry("b.wav")])
        first = q.start()
        second = q.start()
        assert first is not None and second is None
        await q.wait()
        assert await q.run() == 0

    try:
        asyncio.run(go())
    finally:
        cache.close()
    assert q.flushes == 1


def test_widen_never_narrows():
    b = default_bounds()
    assert widen_duration(b, 30) is b
    wide = widen_duration(b, 120.2)
    assert wide.duration.max == 121
    assert widen_duration(wide, 90) is wide


def test_compute_bounds_keeps_previous_duration_max():
    files = [_entry("a.wav")]
    prev = widen_duration(default_bounds(), 180)
    b = compute_bounds(files, {"a.wav": 3.0}, prev)
    assert b.duration.max == 180
    assert b.size.min == b.size.max == 1


def test_session_bounds_grow_with_discovered_durations(fast_settings):
    root = FakeDir("lib", [FakeFile("long.wav", b"l", 10), FakeFile("short.wav", b"s", 20)])
    store = RecordingStore()
    session = LibrarySession(fast_settings, store, probe=_probe_by_name({"long.wav": 125.4, "short.wav": 4.0}))

    async def go():
        session.start()
        await session.open_library(root)
        await session.enrichment.wait()
        assert session.bounds.duration.max == 126
        assert session.criteria.duration_range.max == 126

        root.children = [FakeFile("tiny.wav", b"t", 30)]
        await session.refresh()
        await session.enrichment.wait()
        await session.close()

    asyncio.run(go())
    assert session.bounds.duration.max == 126
    assert session.durations["long.wav"] == 125.4
    assert store.data[DURATIONS_KEY]["tiny.wav"] == 1.5
