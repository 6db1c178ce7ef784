"""
Entry Ledger - append-only store of curated entries.

Holds the ordered sequence of entries plus an id -> index map.

Invariants:
- lookup(e.entry_id) == index of e, for every stored entry
- Ids are never reused and indices are never reclaimed; an entry is
  drained to zero balance, never deleted

Complexity:
- insert / lookup / get: O(1)
- Space: O(N)
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .curve import check_invariants
from .errors import DuplicateEntryError, NotFoundError
from .models import CurveParameters, Entry, display_id

logger = logging.getLogger(__name__)


class EntryLedger:
    """Exclusive owner of all Entry records."""

    def __init__(self) -> None:
        self._entries: List[Entry] = []
        self._index: Dict[bytes, int] = {}

    def insert(self, owner: str, entry_id: bytes) -> int:
        """
        Append a zeroed entry for ``entry_id``.

        Returns:
            Index of the new entry

        Raises:
            DuplicateEntryError: if the id is already registered
        """
        if entry_id in self._index:
            raise DuplicateEntryError(f"entry already exists: {display_id(entry_id)}")
        index = len(self._entries)
        self._entries.append(Entry(owner=owner, entry_id=entry_id))
        self._index[entry_id] = index
        return index

    def lookup(self, entry_id: bytes) -> int:
        """Return the index of ``entry_id`` or raise NotFoundError."""
        try:
            return self._index[entry_id]
        except KeyError:
            raise NotFoundError(f"no entry with id {display_id(entry_id)}") from None

    def get(self, index: int) -> Entry:
        """Return the stored entry at ``index`` (by reference)."""
        if not 0 <= index < len(self._entries):
            raise NotFoundError(f"no entry at index {index}")
        return self._entries[index]

    def store(self, index: int, entry: Entry) -> None:
        """Replace the record at ``index`` with a committed state of the same entry."""
        current = self.get(index)
        if entry.entry_id != current.entry_id or entry.owner != current.owner:
            raise ValueError("store() cannot change an entry's id or owner")
        self._entries[index] = entry

    def contains(self, entry_id: bytes) -> bool:
        return entry_id in self._index

    def snapshot(self, entry_id: bytes) -> Entry:
        """Return a detached copy of the entry registered under ``entry_id``."""
        return replace(self.get(self.lookup(entry_id)))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._index

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [entry.to_dict() for entry in self._entries]}

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        params: Optional[CurveParameters] = None,
    ) -> "EntryLedger":
        """
        Rebuild a ledger, preserving insertion order.

        When ``params`` is given, every entry is checked against the
        vote/balance invariants.
        """
        ledger = cls()
        for raw in data.get("entries", []):
            entry = Entry.from_dict(raw)
            if params is not None:
                check_invariants(entry, params)
            index = ledger.insert(entry.owner, entry.entry_id)
            ledger.store(index, entry)
        return ledger


def save_ledger(path: Union[str, Path], ledger: EntryLedger) -> None:
    """Write a JSON snapshot of ``ledger``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(ledger.to_dict(), indent=2))
    logger.info(f"Saved {len(ledger)} entries to {path}")


def load_ledger(
    path: Union[str, Path],
    params: Optional[CurveParameters] = None,
) -> EntryLedger:
    """Load a JSON snapshot written by save_ledger()."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"State file not found: {path}")
    ledger = EntryLedger.from_dict(json.loads(path.read_text()), params)
    logger.info(f"Loaded {len(ledger)} entries from {path}")
    return ledger
