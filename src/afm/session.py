"""Library session: the one object that owns all mutable state.

Scanner output, filter inputs, metadata maps, enrichment and playback are
wired together here; components receive what they need explicitly instead
of reaching for module-level state.
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from loguru import logger

from .bounds import compute_bounds, default_bounds, widen_duration
from .config import AfmSettings
from .debounce import Debouncer
from .enrichment import EnrichmentQueue
from .errors import ExportError
from .export import ExportFormat, write_export
from .filtering import filter_files
from .fs import DirectoryHandle, FileHandle
from .logging import log_event
from .models import (
    ROOT_ID,
    Bounds,
    FilterCriteria,
    LibraryEntry,
    Range,
    SortKey,
    SortSpec,
)
from .notices import NoticeBoard
from .playback import AudioOutput, PlaybackSequencer, SequencerOptions
from .probe import DurationProbe
from .relocation import MoveReport, move_many
from .scanner import build_tree_from_files, collect, find_entry, folder_children, parent_path, scan_library
from .shortcuts import ShortcutTable
from .store import KeyValueStore, MemoryStore, MetadataCache, MetadataStore
from .tree_view import FlatRow, expand_ancestors, flatten_tree, visible_rows
from .waveform import Decoder


def open_store(settings: AfmSettings) -> KeyValueStore:
    if not settings.store_enable:
        return MemoryStore()
    return MetadataStore(Path(settings.store_path).expanduser())


def toggle_star(current: int, star: int) -> int:
    """Clicking the lit top star clears it back by one."""
    return star - 1 if current == star else star


class LibrarySession:
    def __init__(
        self,
        settings: Optional[AfmSettings] = None,
        store: Optional[KeyValueStore] = None,
        *,
        probe: Optional[DurationProbe] = None,
        decoder: Optional[Decoder] = None,
        output: Optional[AudioOutput] = None,
    ) -> None:
        self.settings = settings or AfmSettings()
        self.cache = MetadataCache(store if store is not None else open_store(self.settings))
        self.notices = NoticeBoard(self.settings.notice_ttl_s)

        self.root_handle: Optional[DirectoryHandle] = None
        self.tree: Optional[LibraryEntry] = None
        self.files: List[LibraryEntry] = []
        self.folders: List[LibraryEntry] = []
        self.durations: Dict[str, float] = {}
        self.ratings: Dict[str, int] = {}
        self.bounds: Bounds = default_bounds(self.settings.default_duration_max)
        self.criteria = FilterCriteria().with_bounds(self.bounds)
        self.sort = SortSpec()
        self.selected: Set[str] = set()
        self.expanded: Set[str] = {ROOT_ID}
        self.current_path = ROOT_ID
        self.search_text = ""
        self.is_loading = False
        self.shortcuts = ShortcutTable()

        self.enrichment = EnrichmentQueue(
            self.durations,
            self.cache,
            probe,
            batch_size=self.settings.enrich_batch_size,
            flush_interval=self.settings.enrich_flush_interval_s,
            yield_s=self.settings.enrich_yield_s,
            probe_timeout=self.settings.probe_timeout_s,
            on_duration=self._on_duration,
        )
        self.player = PlaybackSequencer(
            self.filtered_files,
            self.notices,
            output=output,
            decoder=decoder,
            options=SequencerOptions(
                waveform_points=self.settings.waveform_points,
                randomize_gradient=self.settings.randomize_gradient_on_load,
                color_waveform=self.settings.color_waveform,
                skip_delay=self.settings.skip_delay_s,
            ),
        )
        self._search = Debouncer(self.settings.search_debounce_s, self.apply_search)

    # -- lifecycle ------------------------------------------------------

    def start(self) -> None:
        """Merge persisted durations, ratings and shortcuts into the session."""
        self.durations.update(self.cache.load_durations())
        self.ratings.update(self.cache.load_ratings())
        self.shortcuts = ShortcutTable(self.cache.load_shortcuts())
        logger.debug(f"loaded {len(self.durations)} duration(s), {len(self.ratings)} rating(s)")

    async def open_library(self, handle: DirectoryHandle) -> None:
        self.root_handle = handle
        self.player.reset_session()
        await self.refresh()

    async def refresh(self) -> None:
        """Rescan the root, reset range filters to the new bounds, reseed enrichment."""
        if self.root_handle is None:
            return
        self.is_loading = True
        try:
            tree = await scan_library(self.root_handle)
            self._install_tree(tree)
            self.enrichment.seed(self.files)
        finally:
            self.is_loading = False
        self.enrichment.start()
        await self.maybe_auto_load()

    async def import_files(self, label: str, files: Iterable[Tuple[str, FileHandle]]) -> None:
        """Adopt an uploaded file list; cached durations are not consulted."""
        self.root_handle = None
        self.player.reset_session()
        self.is_loading = True
        try:
            tree, file_list = await build_tree_from_files(label, files)
            self.durations.clear()
            self._install_tree(tree)
            self.enrichment.seed(file_list, {})
        finally:
            self.is_loading = False
        self.enrichment.start()
        await self.maybe_auto_load()

    def _install_tree(self, tree: LibraryEntry) -> None:
        self.tree = tree
        self.files, self.folders = collect(tree)
        if self.files:
            self.bounds = compute_bounds(
                self.files, self.durations, self.bounds, self.settings.default_duration_max
            )
            self.criteria = self.criteria.with_bounds(self.bounds)
        logger.info(f"Library: {len(self.files)} file(s) in {len(self.folders)} folder(s)")

    async def maybe_auto_load(self) -> bool:
        if self.is_loading:
            return False
        return await self.player.auto_load_first()

    def _on_duration(self, duration: float) -> None:
        widened = widen_duration(self.bounds, duration)
        if widened is self.bounds:
            return
        # Keep a filter that spanned the full range spanning the widened one.
        if self.criteria.duration_range.max >= self.bounds.duration.max:
            self.criteria = replace(
                self.criteria,
                duration_range=Range(self.criteria.duration_range.min, widened.duration.max),
            )
        self.bounds = widened

    async def close(self) -> None:
        self._search.cancel()
        self.player.close()
        self.enrichment.stop()
        await self.enrichment.wait()
        await self.cache.drain()
        self.cache.close()

    # -- views ----------------------------------------------------------

    def filtered_files(self) -> List[LibraryEntry]:
        return filter_files(self.files, self.criteria, self.sort, self.durations, self.ratings)

    def tree_rows(self) -> List[FlatRow]:
        if self.tree is None:
            return []
        expand_ancestors(self.player.state.active_id, self.expanded)
        return flatten_tree([self.tree], self.criteria, self.expanded, self.sort, self.durations, self.ratings)

    def visible_rows(self, scroll_top: float, viewport_height: float) -> Tuple[int, Sequence[FlatRow]]:
        return visible_rows(
            self.tree_rows(), scroll_top, viewport_height, self.settings.row_height, self.settings.overscan
        )

    def toggle_folder(self, folder_id: str) -> None:
        if folder_id in self.expanded:
            self.expanded.discard(folder_id)
        else:
            self.expanded.add(folder_id)

    def current_folder_items(self) -> Tuple[LibraryEntry, ...]:
        return folder_children(self.tree, self.current_path)

    def navigate(self, path: str) -> None:
        self.current_path = path

    def navigate_up(self) -> None:
        self.current_path = parent_path(self.current_path)

    # -- filter inputs --------------------------------------------------

    def set_search_text(self, text: str) -> None:
        """Debounced: only the last keystroke within the window is applied."""
        self.search_text = text
        self._search.schedule(text)

    def apply_search(self, text: str) -> None:
        self.criteria = replace(self.criteria, search_query=text)

    def set_size_range(self, lo: float, hi: float) -> None:
        self.criteria = replace(self.criteria, size_range=Range(lo, max(lo, hi)))

    def set_duration_range(self, lo: float, hi: float) -> None:
        self.criteria = replace(self.criteria, duration_range=Range(lo, max(lo, hi)))

    def set_date_range(self, lo: float, hi: float) -> None:
        self.criteria = replace(self.criteria, date_range=Range(lo, max(lo, hi)))

    def set_min_rating(self, rating: int) -> None:
        self.criteria = replace(self.criteria, min_rating=min(5, max(0, int(rating))))

    def click_sort(self, key: SortKey) -> SortSpec:
        self.sort = self.sort.clicked(key)
        return self.sort

    # -- ratings and selection -------------------------------------------

    def rate(self, entry_id: str, rating: int) -> None:
        self.ratings[entry_id] = min(5, max(0, int(rating)))
        self.cache.save_ratings(self.ratings)

    def click_star(self, entry_id: str, star: int) -> int:
        value = toggle_star(self.ratings.get(entry_id, 0), star)
        self.rate(entry_id, value)
        return value

    def toggle_selection(self, entry_id: str) -> None:
        if entry_id in self.selected:
            self.selected.discard(entry_id)
        else:
            self.selected.add(entry_id)

    def select_all(self) -> None:
        visible = self.filtered_files()
        if len(self.selected) == len(visible):
            self.selected = set()
        else:
            self.selected = {f.id for f in visible}

    # -- relocation -----------------------------------------------------

    def _move_candidates(self) -> List[LibraryEntry]:
        by_id = {f.id: f for f in self.files}
        if self.selected:
            return [by_id[i] for i in self.selected if i in by_id]
        active = self.player.state.active_id
        if active and active in by_id:
            return [by_id[active]]
        return []

    async def move_selection(self, target_id: str) -> Optional[MoveReport]:
        """Move the selection (or the active file) into ``target_id``, then rescan."""
        target = find_entry([self.tree], target_id) if self.tree is not None else None
        items = self._move_candidates()
        if target is None or not target.is_dir or not items:
            return None
        self.is_loading = True
        try:
            report = await move_many(items, target)
            self.selected = set()
            await self.refresh()
        finally:
            self.is_loading = False
        log_event("move", target=target_id, moved=report.moved, failed=len(report.failed) or None)
        if report.failed:
            self.notices.post(f"MOVED {report.moved} FILE(S), {len(report.failed)} FAILED", 3.0, level="WARNING")
        else:
            self.notices.post(f"MOVED {report.moved} FILE(S)", 2.5)
        return report

    def add_shortcut(self) -> None:
        if self.shortcuts.add(self.folders) is not None:
            self.cache.save_shortcuts(self.shortcuts.items)

    def retarget_shortcut(self, key: str, target_path: str) -> None:
        if self.shortcuts.retarget(key, target_path):
            self.cache.save_shortcuts(self.shortcuts.items)

    def remove_shortcut(self, key: str) -> None:
        if self.shortcuts.remove(key):
            self.cache.save_shortcuts(self.shortcuts.items)

    async def trigger_shortcut(self, key: str) -> Optional[MoveReport]:
        folder = self.shortcuts.target_for(key, self.folders)
        if folder is None:
            return None
        return await self.move_selection(folder.id)

    # -- export and misc ------------------------------------------------

    def export(self, fmt: ExportFormat, dest_dir: Path) -> Optional[Path]:
        files = self.filtered_files()
        if not files:
            self.notices.post("NO FILES TO EXPORT", 2.0)
            return None
        try:
            written = write_export(dest_dir, files, fmt, self.durations, self.ratings)
        except ExportError as e:
            logger.warning(str(e))
            self.notices.post("EXPORT FAILED", 2.0, level="WARNING")
            return None
        log_event("export", path=str(written), files=len(files), fmt=fmt)
        return written

    def locate(self, entry_id: str) -> None:
        self.notices.post(f"LOCATED: ./{entry_id}", 4.0)

    def entry(self, entry_id: str) -> Optional[LibraryEntry]:
        return next((f for f in self.files if f.id == entry_id), None)

    async def play(self, entry_id: str, auto_start: bool = True) -> bool:
        item = self.entry(entry_id)
        if item is None:
            return False
        return await self.player.play(item, auto_start)
