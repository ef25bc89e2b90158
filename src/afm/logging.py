from __future__ import annotations
import sys
import uuid
from typing import Optional, Any, Callable, Dict
from loguru import logger


def setup_console(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), enqueue=True, backtrace=False, diagnose=False)

def setup_json(path: str, level: str = "DEBUG") -> None:
    logger.add(path, level=level.upper(), serialize=True, enqueue=True)

def setup_callback_sink(callback: Callable[[str], None], level: str = "INFO") -> int:
    """Mirror log messages to ``callback`` (e.g. a front-end status view).

    Returns the sink id for ``logger.remove``. A failing callback never
    breaks the logging call that fed it.
    """
    fmt = "<level>{level: <8}</level> | <green>{time:HH:mm:ss}</green> | <cyan>{message}</cyan>"
    def sink(msg: "loguru.Message"):
        try:
            text = msg.record.get("message", str(msg))
            callback(str(text).rstrip())
        except Exception:
            pass
    return logger.add(sink, level=level.upper(), format=fmt)

def bind_session(session_id: Optional[str] = None) -> str:
    sid = session_id or str(uuid.uuid4())
    # Applies to every record from every module.
    logger.configure(extra={"session_id": sid})
    return sid

def log_event(action: str, **fields: Any) -> None:
    # None fields are dropped; msg/level are taken out of the bound extras
    clean: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
    msg = clean.pop("msg", action)
    level = clean.pop("level", "INFO").upper()
    logger.bind(action=action, **clean).log(level, msg)


def truncate(text: str, max_len: int = 4096, max_lines: int = 20) -> str:
    """Keep the tail of ``text``: at most ``max_lines`` lines and ``max_len`` chars."""
    if not text:
        return ""
    lines = text.strip().splitlines()
    if len(lines) > max_lines:
        text = "\n".join(["... (truncated)"] + lines[-max_lines:])
    if len(text) > max_len:
        text = "... (truncated)\n" + text[-max_len:]
    return text
