"""
In-memory draft of the daemon configuration.

A ``ConfigDraft`` holds the snapshot that was last loaded from disk
(``original``) and the edited copy (``current``) for one editing session or
request. It tracks which keys differ from the original and whether any of
them only take effect after the daemon restarts. No I/O happens here.
"""

import copy
from typing import Any

from crossseed_ui.schemas.config import RESTART_REQUIRED_OPTIONS


class ConfigDraft:
    """Original/current snapshot pair with change tracking."""

    def __init__(self, snapshot: dict[str, Any] | None = None) -> None:
        self.original: dict[str, Any] = {}
        self.current: dict[str, Any] = {}
        self.changed_fields: set[str] = set()
        self.requires_restart = False
        if snapshot is not None:
            self.load(snapshot)

    def load(self, snapshot: dict[str, Any]) -> None:
        """Replace both snapshots with a freshly fetched configuration."""
        self.original = copy.deepcopy(snapshot)
        self.current = copy.deepcopy(snapshot)
        self.changed_fields = set()
        self.requires_restart = False

    def apply(self, update: dict[str, Any]) -> set[str]:
        """
        Shallow-merge ``update`` into ``current``.

        Only keys present in ``update`` are compared with the original; a
        key edited back to its original value stops counting as changed.

        Returns:
            set: The keys of ``update`` that now differ from the original
        """
        changed_now = set()
        for key, value in update.items():
            self.current[key] = copy.deepcopy(value)
            if key not in self.original or self.original[key] != value:
                self.changed_fields.add(key)
                changed_now.add(key)
            else:
                self.changed_fields.discard(key)

        self.requires_restart = bool(self.changed_fields & RESTART_REQUIRED_OPTIONS)
        return changed_now

    def replace(self, snapshot: dict[str, Any]) -> set[str]:
        """
        Make ``snapshot`` the whole of ``current``.

        Unlike ``apply``, keys missing from ``snapshot`` are removed and
        count as changed.
        """
        self.current = copy.deepcopy(snapshot)
        self.changed_fields = {
            key
            for key in set(self.original) | set(self.current)
            if key not in self.original
            or key not in self.current
            or self.original[key] != self.current[key]
        }
        self.requires_restart = bool(self.changed_fields & RESTART_REQUIRED_OPTIONS)
        return set(self.changed_fields)

    def discard(self) -> None:
        """Revert ``current`` to the original snapshot."""
        self.current = copy.deepcopy(self.original)
        self.changed_fields = set()
        self.requires_restart = False

    def acknowledge(self) -> None:
        """Accept ``current`` as the new baseline (after a save or restart)."""
        self.original = copy.deepcopy(self.current)
        self.changed_fields = set()
        self.requires_restart = False

    def restart_fields(self) -> list[str]:
        return sorted(self.changed_fields & RESTART_REQUIRED_OPTIONS)
