from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger

# Ensure local src/ is importable when running from project root
ROOT = Path(__file__).parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Prefer line-buffered output so progress prints appear promptly under wrappers
try:  # Python 3.7+
    sys.stdout.reconfigure(line_buffering=True)
    sys.stderr.reconfigure(line_buffering=True)
except Exception:
    pass

from afm.config import AfmSettings, cli_overrides_from_args  # noqa: E402
from afm.errors import AfmError  # noqa: E402
from afm.export import format_duration, format_size, render_export  # noqa: E402
from afm.fs import open_directory  # noqa: E402
from afm.logging import bind_session, setup_console, setup_json  # noqa: E402
from afm.models import SORT_KEYS, SortSpec  # noqa: E402
from afm.session import LibrarySession  # noqa: E402
from afm.waveform import SoundfileDecoder, compute_peaks, summarize  # noqa: E402


EXIT_OK = 0
EXIT_WITH_FILE_ERRORS = 2
EXIT_BAD_INPUT = 3


def configure_logging(log_level: str = "INFO", log_json_path: Optional[str] = None) -> None:
    """Configure Loguru for human console output and optional JSON lines file.

    log_level: Console log level (e.g., INFO, DEBUG, WARNING).
    log_json_path: If provided, write structured JSON lines to this path.
    """
    setup_console(log_level)
    if log_json_path:
        setup_json(log_json_path)
    bind_session()


async def _opened(cfg: AfmSettings, root: str) -> LibrarySession:
    session = LibrarySession(cfg)
    session.start()
    await session.open_library(open_directory(root))
    return session


def _apply_filters(session: LibrarySession, args: Any) -> None:
    if getattr(args, "search", None):
        session.apply_search(args.search)
    if getattr(args, "min_rating", None) is not None:
        session.set_min_rating(args.min_rating)
    lo = getattr(args, "min_duration", None)
    hi = getattr(args, "max_duration", None)
    if lo is not None or hi is not None:
        rng = session.criteria.duration_range
        session.set_duration_range(rng.min if lo is None else lo, rng.max if hi is None else hi)
    if getattr(args, "sort", None) or getattr(args, "order", None):
        session.sort = SortSpec(args.sort or "name", args.order or "asc")


def cmd_scan(cfg: AfmSettings, root: str) -> int:
    async def run() -> int:
        session = await _opened(cfg, root)
        try:
            await session.enrichment.wait()
            known = sum(1 for f in session.files if session.durations.get(f.id))
            print(f"files:     {len(session.files)}")
            print(f"folders:   {len(session.folders)}")
            print(f"durations: {known}/{len(session.files)}")
            b = session.bounds
            print(f"size:      {format_size(int(b.size.min))} .. {format_size(int(b.size.max))}")
            print(f"duration:  0 .. {format_duration(b.duration.max)}")
        finally:
            await session.close()
        return EXIT_OK

    return asyncio.run(run())


def cmd_list(cfg: AfmSettings, root: str, args: Any) -> int:
    async def run() -> int:
        session = await _opened(cfg, root)
        try:
            if args.enrich:
                await session.enrichment.wait()
            _apply_filters(session, args)
            files = session.filtered_files()
            print(render_export(files, args.format, session.durations, session.ratings))
        finally:
            await session.close()
        return EXIT_OK

    return asyncio.run(run())


def cmd_export(cfg: AfmSettings, root: str, args: Any) -> int:
    async def run() -> int:
        session = await _opened(cfg, root)
        try:
            _apply_filters(session, args)
            written = session.export(args.format, Path(args.out).expanduser())
        finally:
            await session.close()
        if written is None:
            logger.error("Nothing exported")
            return EXIT_WITH_FILE_ERRORS
        print(f"Exported to: {written}")
        return EXIT_OK

    return asyncio.run(run())


def cmd_rate(cfg: AfmSettings, root: str, entry_id: str, rating: int) -> int:
    async def run() -> int:
        session = await _opened(cfg, root)
        try:
            if session.entry(entry_id) is None:
                logger.error(f"No such file: {entry_id}")
                return EXIT_BAD_INPUT
            session.rate(entry_id, rating)
        finally:
            await session.close()
        return EXIT_OK

    return asyncio.run(run())


def cmd_move(cfg: AfmSettings, root: str, target: str, ids: List[str]) -> int:
    async def run() -> int:
        session = await _opened(cfg, root)
        try:
            for entry_id in ids:
                session.toggle_selection(entry_id)
            report = await session.move_selection(target)
        finally:
            await session.close()
        if report is None:
            logger.error(f"Nothing moved (target {target!r} or selection invalid)")
            return EXIT_BAD_INPUT
        print(f"moved: {report.moved}")
        if report.skipped:
            print(f"already there: {report.skipped}")
        for entry_id, reason in report.failed:
            print(f"failed: {entry_id}: {reason}")
        return EXIT_OK if not report.failed else EXIT_WITH_FILE_ERRORS

    return asyncio.run(run())


def cmd_peaks(path: str, points: int, as_json: bool) -> int:
    src = Path(path).expanduser()
    try:
        decoded = SoundfileDecoder().decode(src.read_bytes())
    except (OSError, AfmError) as e:
        logger.error(f"{src}: {e}")
        return EXIT_WITH_FILE_ERRORS
    peaks = compute_peaks(decoded.channel(0), points)
    if as_json:
        print(json.dumps({"duration": decoded.duration, "points": peaks}))
        return EXIT_OK
    peak, mean = summarize(peaks)
    print(f"duration: {format_duration(decoded.duration)} ({decoded.duration:.3f}s)")
    print(f"channels: {decoded.channels} @ {decoded.sample_rate} Hz")
    print(f"points:   {len(peaks)} peak={peak:.3f} mean={mean:.3f}")
    return EXIT_OK


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--search", default=None, help="Smart search query (-exclude, /regex/flags, words)")
    p.add_argument("--sort", choices=SORT_KEYS, default=None, help="Sort key (default: name)")
    p.add_argument("--order", choices=["asc", "desc"], default=None, help="Sort order (default: asc)")
    p.add_argument("--min-rating", dest="min_rating", type=int, default=None, help="Minimum rating 0..5")
    p.add_argument("--min-duration", dest="min_duration", type=float, default=None, help="Minimum duration (s)")
    p.add_argument("--max-duration", dest="max_duration", type=float, default=None, help="Maximum duration (s)")
    p.add_argument("--format", choices=["txt", "json"], default="txt", help="Output format")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="audio-file-manager")
    # Config/Logging options (defaults resolved via AfmSettings)
    p.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ~/.config/audio-file-manager/config.toml)",
    )
    p.add_argument(
        "--write-config",
        action="store_true",
        help="Write current effective settings to the config file and exit",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    p.add_argument(
        "--log-json",
        dest="log_json",
        default=None,
        help="Path to write JSON lines log (structured events)",
    )
    p.add_argument(
        "--store",
        dest="store_path",
        default=None,
        help="Path to the metadata store (default: ~/.local/share/afm/metadata.db)",
    )
    sub = p.add_subparsers(dest="cmd", required=False)

    p_scan = sub.add_parser("scan", help="Scan a library and derive missing durations")
    p_scan.add_argument("root", help="Library root directory")

    p_list = sub.add_parser("list", help="Print the filtered, sorted file list")
    p_list.add_argument("root", help="Library root directory")
    _add_filter_args(p_list)
    p_list.add_argument("--enrich", action="store_true", help="Wait for duration enrichment before listing")

    p_export = sub.add_parser("export", help="Write the filtered listing to a file")
    p_export.add_argument("root", help="Library root directory")
    _add_filter_args(p_export)
    p_export.add_argument("--out", required=True, help="Directory for the export file")

    p_rate = sub.add_parser("rate", help="Set the rating (0..5) of a file")
    p_rate.add_argument("root", help="Library root directory")
    p_rate.add_argument("id", help="File id (path relative to the root)")
    p_rate.add_argument("rating", type=int, choices=range(0, 6))

    p_move = sub.add_parser("move", help="Move files into a folder of the library")
    p_move.add_argument("root", help="Library root directory")
    p_move.add_argument("--to", dest="target", required=True, help="Target folder id (path relative to the root)")
    p_move.add_argument("ids", nargs="+", help="File ids to move")

    p_peaks = sub.add_parser("peaks", help="Decode a file and print its peak waveform")
    p_peaks.add_argument("file", help="Audio file")
    p_peaks.add_argument("--points", type=int, default=None, help="Number of peak samples (default from settings)")
    p_peaks.add_argument("--json", dest="as_json", action="store_true", help="Print the peaks as JSON")

    args = p.parse_args(argv)
    # Load settings: defaults + TOML + env + CLI overrides
    overrides = cli_overrides_from_args(args)
    cfg = AfmSettings.load(config_path=Path(args.config_path).expanduser() if args.config_path else None, overrides=overrides)

    # Write config and exit if requested
    if args.write_config:
        written = cfg.write(Path(args.config_path).expanduser() if args.config_path else None)
        print(f"Config written to: {written}")
        return EXIT_OK

    configure_logging(cfg.log_level, cfg.log_json)
    try:
        if args.cmd == "scan":
            return cmd_scan(cfg, args.root)
        if args.cmd == "list":
            return cmd_list(cfg, args.root, args)
        if args.cmd == "export":
            return cmd_export(cfg, args.root, args)
        if args.cmd == "rate":
            return cmd_rate(cfg, args.root, args.id, args.rating)
        if args.cmd == "move":
            return cmd_move(cfg, args.root, args.target, args.ids)
        if args.cmd == "peaks":
            return cmd_peaks(args.file, args.points or cfg.waveform_points, args.as_json)
    except AfmError as e:
        logger.error(str(e))
        return EXIT_BAD_INPUT
    p.error("a command is required")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
