"""
Ranking of curated entries by effective balance.

Ties are broken by creation order: the earlier entry ranks higher.

Complexity: O(N log K) for the top K of N entries.
"""

from __future__ import annotations

import heapq
from dataclasses import replace
from typing import List, Optional

from .ledger import EntryLedger
from .models import Entry


def top_entries(ledger: EntryLedger, k: Optional[int] = None) -> List[Entry]:
    """
    Return copies of the best ``k`` entries (all entries when k is None).

    Args:
        ledger: Ledger to rank
        k: Number of entries to return

    Returns:
        Entries sorted by effective_balance descending
    """
    if k is not None and k <= 0:
        raise ValueError("k must be positive")
    indexed = list(enumerate(ledger))
    n = len(indexed) if k is None else k
    best = heapq.nlargest(n, indexed, key=lambda pair: (pair[1].effective_balance, -pair[0]))
    return [replace(entry) for _, entry in best]


def rank_of(ledger: EntryLedger, entry_id: bytes) -> int:
    """1-based position of ``entry_id`` in the full ranking."""
    target = ledger.get(ledger.lookup(entry_id))
    key = (target.effective_balance, -ledger.lookup(entry_id))
    return 1 + sum(
        1 for i, entry in enumerate(ledger) if (entry.effective_balance, -i) > key
    )
