"""Deduplication ledger for one crawl run.

The ledger is owned by a single map-search session so that concurrent runs
for different locations never see each other's identifiers.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional, Set


class DeduplicationLedger:
    def __init__(self, seen: Optional[Iterable[str]] = None) -> None:
        self._seen: Set[str] = set(seen or ())

    def __contains__(self, place_id: object) -> bool:
        return place_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[str]:
        return iter(self._seen)

    def claim(self, place_id: str) -> bool:
        """Record ``place_id``; return False when it was already recorded.

        Called before the candidate is opened, so a candidate surfacing
        again under another query variant is skipped without a page load.
        """
        if place_id in self._seen:
            return False
        self._seen.add(place_id)
        return True
