"""Keyboard move shortcuts: key -> target folder id, persisted as a list."""
from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence

from .models import LibraryEntry, MoveShortcut

SHORTCUT_KEY_SEQUENCE = ("z", "x", "c", "v", "b", "n", "m")


class ShortcutTable:
    def __init__(self, shortcuts: Optional[Sequence[MoveShortcut]] = None) -> None:
        self.items: List[MoveShortcut] = list(shortcuts or [])

    def can_add(self) -> bool:
        return len(self.items) < len(SHORTCUT_KEY_SEQUENCE)

    def add(self, folders: Sequence[LibraryEntry]) -> Optional[MoveShortcut]:
        """Assign the next unused key, pointing at the first folder by default."""
        used = {s.key for s in self.items}
        key = next((k for k in SHORTCUT_KEY_SEQUENCE if k not in used), None)
        if key is None:
            return None
        shortcut = MoveShortcut(key=key, target_path=folders[0].id if folders else "")
        self.items.append(shortcut)
        return shortcut

    def retarget(self, key: str, target_path: str) -> bool:
        for i, s in enumerate(self.items):
            if s.key == key:
                self.items[i] = replace(s, target_path=target_path)
                return True
        return False

    def remove(self, key: str) -> bool:
        before = len(self.items)
        self.items = [s for s in self.items if s.key != key]
        return len(self.items) != before

    def target_for(self, key: str, folders: Sequence[LibraryEntry]) -> Optional[LibraryEntry]:
        key = key.lower()
        for s in self.items:
            if s.key == key:
                return next((f for f in folders if f.id == s.target_path), None)
        return None
