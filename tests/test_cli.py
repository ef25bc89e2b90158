"""End-to-end runs of the command line entry point against a temporary library."""

import json
from pathlib import Path

import pytest
from loguru import logger

from main import EXIT_BAD_INPUT, EXIT_OK, main


@pytest.fixture
def library(tmp_path: Path) -> Path:
    root = tmp_path / "lib"
    (root / "Drums").mkdir(parents=True)
    (root / "Keep").mkdir()
    (root / "Drums" / "kick.wav").write_bytes(b"k" * 40)
    (root / "snare.wav").write_bytes(b"s" * 20)
    (root / "notes.txt").write_text("ignored")
    return root


@pytest.fixture
def base_args(tmp_path: Path):
    yield ["--config", str(tmp_path / "config.toml"), "--store", str(tmp_path / "meta.db"), "--log-level", "ERROR"]
    logger.remove()


def test_list_prints_audio_files(library, base_args, capsys):
    assert main([*base_args, "list", str(library)]) == EXIT_OK
    assert capsys.readouterr().out.splitlines() == ["kick.wav", "snare.wav"]


def test_list_sorted_by_size_as_json(library, base_args, capsys):
    assert main([*base_args, "list", str(library), "--sort", "size", "--order", "desc", "--format", "json"]) == EXIT_OK
    records = json.loads(capsys.readouterr().out)
    assert [r["path"] for r in records] == ["Drums/kick.wav", "snare.wav"]


def test_rating_persists_between_runs(library, base_args, capsys):
    assert main([*base_args, "rate", str(library), "snare.wav", "4"]) == EXIT_OK
    assert main([*base_args, "rate", str(library), "missing.wav", "4"]) == EXIT_BAD_INPUT
    capsys.readouterr()
    assert main([*base_args, "list", str(library), "--min-rating", "3"]) == EXIT_OK
    assert capsys.readouterr().out.splitlines() == ["snare.wav"]


def test_move_relocates_on_disk(library, base_args, capsys):
    assert main([*base_args, "move", str(library), "--to", "Keep", "snare.wav"]) == EXIT_OK
    assert "moved: 1" in capsys.readouterr().out
    assert (library / "Keep" / "snare.wav").read_bytes() == b"s" * 20
    assert not (library / "snare.wav").exists()


def test_export_writes_listing(library, base_args, tmp_path, capsys):
    out_dir = tmp_path / "exports"
    assert main([*base_args, "export", str(library), "--search", "kick", "--out", str(out_dir)]) == EXIT_OK
    written = list(out_dir.glob("afm_export_*.txt"))
    assert len(written) == 1
    assert written[0].read_text(encoding="utf-8") == "kick.wav"


def test_write_config(base_args, tmp_path, capsys):
    assert main([*base_args, "--write-config"]) == EXIT_OK
    text = (tmp_path / "config.toml").read_text(encoding="utf-8")
    assert 'log_level = "ERROR"' in text
    assert "meta.db" in text
