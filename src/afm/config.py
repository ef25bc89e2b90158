from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - Python <3.11 not supported per pyproject
    tomllib = None  # type: ignore

from tomlkit import dumps as toml_dumps


DEFAULT_CONFIG_PATH = Path("~/.config/audio-file-manager/config.toml").expanduser()
ENV_PREFIX = "AFM_"


class AfmSettings(BaseSettings):
    """Global settings for audio-file-manager.

    Priority (lowest -> highest):
    - Class defaults below
    - TOML file at `config_path` (default: ~/.config/audio-file-manager/config.toml)
    - Environment variables with prefix AFM_
    - CLI overrides passed to `load(overrides=...)`
    """

    # Logging
    log_level: str = Field(default="INFO", description="Console log level")
    log_json: Optional[str] = Field(default=None, description="Path for structured JSON log file")

    # Metadata store
    store_path: str = Field(
        default="~/.local/share/afm/metadata.db", description="Path to the metadata store"
    )
    store_enable: bool = Field(default=True, description="Persist durations/ratings/shortcuts across sessions")

    # Enrichment
    probe_timeout_s: float = Field(default=2.0, description="Hard timeout for one duration probe")
    enrich_batch_size: int = Field(default=20, description="Durations per flush")
    enrich_flush_interval_s: float = Field(default=0.5, description="Max seconds between flushes")
    enrich_yield_s: float = Field(default=0.1, description="Cooperative pause after each flush")
    default_duration_max: float = Field(default=60.0, description="Initial duration filter ceiling (s)")

    # Views
    row_height: int = Field(default=34, description="Tree row height for windowed rendering")
    overscan: int = Field(default=10, description="Extra rows rendered above/below the viewport")
    search_debounce_s: float = Field(default=0.2, description="Search input debounce")

    # Playback
    waveform_points: int = Field(default=800, description="Peak samples per waveform")
    randomize_gradient_on_load: bool = Field(default=True, description="New gradient hues per load")
    color_waveform: bool = Field(default=False, description="Derive per-point zero-crossing colours")
    skip_delay_s: float = Field(default=0.25, description="Delay before skipping a failed track")
    notice_ttl_s: float = Field(default=3.0, description="Lifetime of transient notices")

    # Config source/path (not persisted as part of effective config when writing)
    config_path: Path = Field(default=DEFAULT_CONFIG_PATH, exclude=True)

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    @staticmethod
    def default_config_path() -> Path:
        return DEFAULT_CONFIG_PATH

    @classmethod
    def _toml_file_source(cls, config_path: Path) -> Dict[str, Any]:
        """Read settings from a TOML file if it exists; return dict values.

        Unknown keys are ignored by pydantic via extra="ignore".
        """
        if not config_path or not config_path.exists():
            return {}
        if tomllib is None:
            return {}
        with config_path.open("rb") as f:
            data = tomllib.load(f)
        if not isinstance(data, dict):
            return {}
        return data  # type: ignore[return-value]

    @classmethod
    def load(
        cls,
        *,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "AfmSettings":
        """Load settings from defaults + TOML + env + CLI overrides.

        - config_path: path to TOML config; defaults to ~/.config/audio-file-manager/config.toml
        - overrides: dict of CLI values (None values are ignored)
        """
        cp = config_path or DEFAULT_CONFIG_PATH
        file_values = cls._toml_file_source(cp)
        # Keys set in the environment win over the file.
        file_values = {
            k: v for k, v in file_values.items() if f"{ENV_PREFIX}{k}".upper() not in os.environ
        }
        base = cls(**file_values)  # file + env via pydantic
        non_none = {k: v for k, v in (overrides or {}).items() if v is not None}
        merged = base.model_dump()
        merged.update(non_none)
        settings = cls(**merged)
        settings.config_path = cp
        return settings

    def to_toml(self) -> str:
        """Serialize effective settings (excluding ephemeral fields) to TOML string."""
        data = self.model_dump(exclude={"config_path"}, exclude_none=True)
        return toml_dumps(data)

    def write(self, path: Optional[Path] = None) -> Path:
        """Write effective config to TOML at `path` (or default path). Creates parent dirs.

        Returns the path written.
        """
        target = path or self.config_path or DEFAULT_CONFIG_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_toml(), encoding="utf-8")
        return target


def cli_overrides_from_args(args: Any) -> Dict[str, Any]:
    """Extract known settings keys from argparse Namespace into an overrides dict.

    Unknown keys are ignored; None values are preserved for filtering by `load()`.
    """
    keys = {
        "log_level",
        "log_json",
        "store_path",
        "store_enable",
        "probe_timeout_s",
        "waveform_points",
    }
    result: Dict[str, Any] = {}
    for k in keys:
        if hasattr(args, k):
            result[k] = getattr(args, k)
    return result
