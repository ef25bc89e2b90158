"""Smart search: whitespace-separated terms, all of which must match.

- ``-word``      exclude names containing ``word`` (case-insensitive)
- ``/pat/flags`` regular expression, case-insensitive unless flags are given
- ``word``       case-insensitive substring
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional, Pattern

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    # Accepted for compatibility; no effect on a single containment test.
    "g": 0,
    "y": 0,
    "u": 0,
    "d": 0,
}


@lru_cache(maxsize=256)
def _compile(pattern: str, flags: str) -> Optional[Pattern[str]]:
    if len(set(flags)) != len(flags):
        return None
    value = 0
    for ch in flags:
        if ch not in _FLAG_MAP:
            return None
        value |= _FLAG_MAP[ch]
    try:
        return re.compile(pattern, value)
    except re.error:
        return None


def _term_matches(text: str, term: str) -> bool:
    lower = text.lower()
    if term.startswith("-"):
        exclude = term[1:].lower()
        if not exclude:
            return True
        return exclude not in lower
    last = term.rfind("/")
    if term.startswith("/") and last > 0:
        rx = _compile(term[1:last], term[last + 1:] or "i")
        if rx is None:
            return term.lower() in lower
        return rx.search(text) is not None
    return term.lower() in lower


def matches(text: str, query: str) -> bool:
    if not query.strip():
        return True
    return all(_term_matches(text, term) for term in query.split())
