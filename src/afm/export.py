"""Export of the filtered set as a text listing or JSON, plus display labels."""
from __future__ import annotations

import json
import math
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from loguru import logger

from .errors import ExportError
from .models import LibraryEntry

ExportFormat = Literal["txt", "json"]


def export_records(
    files: Sequence[LibraryEntry],
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> List[Dict[str, Any]]:
    return [
        {
            "name": f.name,
            "path": f.id,
            "size": f.size,
            "type": f.mime_hint,
            "duration": durations.get(f.id, 0) or 0,
            "rating": ratings.get(f.id, 0) or 0,
            "lastModified": f.last_modified,
        }
        for f in files
    ]


def render_export(
    files: Sequence[LibraryEntry],
    fmt: ExportFormat,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
) -> str:
    if fmt == "txt":
        return "\n".join(f.name for f in files)
    if fmt == "json":
        return json.dumps(export_records(files, durations, ratings), indent=2)
    raise ExportError(f"unknown export format: {fmt}")


def write_export(
    dest_dir: Path,
    files: Sequence[LibraryEntry],
    fmt: ExportFormat,
    durations: Mapping[str, float],
    ratings: Mapping[str, int],
    now_ms: Optional[int] = None,
) -> Path:
    """Write ``afm_export_<ms>.<fmt>`` atomically; on failure no file is left behind."""
    content = render_export(files, fmt, durations, ratings)
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    target = Path(dest_dir) / f"afm_export_{stamp}.{fmt}"
    tmp_name: Optional[str] = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".afm_export_", dir=str(target.parent))
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as e:
        raise ExportError(f"export failed: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    logger.info(f"Exported {len(files)} file(s) to {target}")
    return target


def format_size(size: Optional[int]) -> str:
    if size is None:
        return "--"
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.0f}K"
    return f"{size / (1024 * 1024):.1f}M"


def format_duration(seconds: Optional[float]) -> str:
    if not seconds:
        return "--"
    if seconds < 1:
        return f"0.{math.floor((seconds % 1) * 100):02d}s"
    m = math.floor(seconds / 60)
    s = math.floor(seconds % 60)
    return f"{m}:{s:02d}"
