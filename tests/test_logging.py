import json
from unittest.mock import MagicMock, patch

import pytest
from loguru import logger

from afm.logging import bind_session, log_event, setup_callback_sink, setup_console, setup_json, truncate


@pytest.fixture(autouse=True)
def setup_test_logger():
    # Each test starts with no sinks attached
    logger.remove()
    yield
    logger.remove()


def test_truncate_short_text():
    text = "hello world"
    assert truncate(text) == text


def test_truncate_long_text_by_len():
    text = "a" * 5000
    truncated = truncate(text, max_len=1000)
    assert len(truncated) < 1100
    assert truncated.startswith("... (truncated)")


def test_truncate_long_text_by_lines():
    text = "\n".join([f"line {i}" for i in range(30)])
    truncated = truncate(text, max_lines=10)
    assert len(truncated.splitlines()) == 11  # 10 lines + marker
    assert truncated.startswith("... (truncated)")


def test_truncate_empty_string():
    assert truncate("") == ""


@patch("afm.logging.logger")
def test_log_event_strips_none_values(mock_logger):
    mock_bound_logger = MagicMock()
    mock_logger.bind.return_value = mock_bound_logger

    log_event("scan", root="/lib", error=None, files=3)

    mock_logger.bind.assert_called_once_with(action="scan", root="/lib", files=3)
    mock_bound_logger.log.assert_called_once_with("INFO", "scan")


@patch("afm.logging.logger")
def test_log_event_uses_msg_and_level_from_fields(mock_logger):
    mock_bound_logger = MagicMock()
    mock_logger.bind.return_value = mock_bound_logger

    log_event("move", msg="2 file(s) failed", level="warning", target="Drums")

    mock_logger.bind.assert_called_once_with(action="move", target="Drums")
    mock_bound_logger.log.assert_called_once_with("WARNING", "2 file(s) failed")


def test_callback_sink_receives_messages():
    lines = []
    sink_id = setup_callback_sink(lines.append, level="INFO")
    logger.debug("hidden")
    logger.info("notice: MOVED 2 FILE(S)  ")
    logger.remove(sink_id)
    logger.info("after removal")
    assert lines == ["notice: MOVED 2 FILE(S)"]


def test_console_replaces_existing_sinks(capsys):
    lines = []
    setup_callback_sink(lines.append)
    setup_console("warning")
    logger.info("quiet")
    logger.warning("loud")
    logger.remove()
    err = capsys.readouterr().err
    assert "loud" in err
    assert "quiet" not in err
    assert lines == []


def test_json_log_includes_session_id(tmp_path):
    log_file = tmp_path / "test.log"
    setup_json(str(log_file))
    session_id = bind_session()
    logger.info("test message")
    logger.complete()
    logger.remove()

    with open(log_file) as f:
        record = json.loads(f.readline())["record"]
    assert record["extra"]["session_id"] == session_id
