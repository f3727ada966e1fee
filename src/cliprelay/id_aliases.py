#!/usr/bin/env python3
"""Persistent alias table for merged canonical IDs.

When two canonical IDs turn out to name the same logical entry, the
losing ID becomes an alias of the survivor. Dependent metadata that
still references the alias (favorites, collections, queued intents)
is migrated through resolve() or migrate() instead of being orphaned.

add() writes the table before returning, so callers may treat an added
alias as durable and remove the losing record from the shared store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from cliprelay.json_state import read_json, write_json_atomic

logger = logging.getLogger(__name__)

ALIASES_FILENAME = "aliases.json"


class AliasTable:
    """Mapping of alias canonical ID -> surviving canonical ID.

    Args:
        state_dir: Directory for the alias file, or None for memory only.
    """

    def __init__(self, state_dir: Path | None = None) -> None:
        self._path = state_dir / ALIASES_FILENAME if state_dir else None
        self._aliases: dict[str, str] = dict(read_json(self._path, {})) if self._path else {}

    def add(self, alias: str, canonical: str) -> None:
        """Record alias as merged into canonical and persist the table.

        Chains are collapsed so every alias points at a final survivor.

        Raises:
            ValueError: If the mapping would create a cycle.
        """
        if alias == canonical:
            return
        target = self.resolve(canonical)
        if target == alias:
            raise ValueError(f"Aliasing {alias} to {canonical} would create a cycle")
        if self._aliases.get(alias) == target:
            return
        self._aliases[alias] = target
        for key, value in self._aliases.items():
            if value == alias:
                self._aliases[key] = target
        if self._path is not None:
            write_json_atomic(self._path, self._aliases)
        logger.info("Aliased %s -> %s", alias, target)

    def resolve(self, canonical_id: str) -> str:
        """Return the surviving canonical ID for canonical_id."""
        seen = {canonical_id}
        current = canonical_id
        while current in self._aliases:
            current = self._aliases[current]
            if current in seen:
                break
            seen.add(current)
        return current

    def is_alias(self, canonical_id: str) -> bool:
        return canonical_id in self._aliases

    def migrate(self, ids: Iterable[str]) -> list[str]:
        """Rewrite a list of references to surviving IDs.

        Order is kept and references collapsing onto the same survivor
        are de-duplicated.
        """
        migrated: list[str] = []
        for canonical_id in ids:
            target = self.resolve(canonical_id)
            if target not in migrated:
                migrated.append(target)
        return migrated

    def __len__(self) -> int:
        return len(self._aliases)
