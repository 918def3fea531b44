"""In-memory persistence collaborator.

Stands in for the relational store the crawlers feed.  Venues are keyed
by their identity (place identifier, else name plus address) so that
saving the same listing twice updates it instead of creating a second
row.  Reviews are de-duplicated on exact ``(venue, text, rating)``
equality before insertion.
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import fields
from typing import Dict, Iterable, List, Optional, Tuple, Union

from models import CrawledReviewData, CrawledRoomData, CrawledVenueData


Identity = Union[str, Tuple[str, str]]

# Nested collections are stored separately; plain fields are merged.
_NESTED = {"rooms", "reviews"}


class InMemoryVenueRepository:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._venues: Dict[int, CrawledVenueData] = {}
        self._by_identity: Dict[Identity, int] = {}
        self._rooms: Dict[int, List[CrawledRoomData]] = {}
        self._reviews: Dict[int, List[CrawledReviewData]] = {}

    def __len__(self) -> int:
        return len(self._venues)

    def create(self, venue: CrawledVenueData) -> int:
        venue_id = next(self._ids)
        stored = copy.deepcopy(venue)
        stored.rooms, stored.reviews = [], []
        self._venues[venue_id] = stored
        self._by_identity[venue.identity] = venue_id
        self._rooms[venue_id] = []
        self._reviews[venue_id] = []
        return venue_id

    def find_by_identifier(self, identity: Identity) -> Optional[int]:
        return self._by_identity.get(identity)

    def get(self, venue_id: int) -> Optional[CrawledVenueData]:
        return self._venues.get(venue_id)

    def update(self, venue_id: int, venue: CrawledVenueData) -> None:
        """Overwrite stored fields with every non-``None``, non-empty field of ``venue``."""
        stored = self._venues[venue_id]
        for f in fields(venue):
            if f.name in _NESTED:
                continue
            value = getattr(venue, f.name)
            if value is None or (isinstance(value, (list, dict)) and not value):
                continue
            setattr(stored, f.name, copy.deepcopy(value))

    def upsert(self, venue: CrawledVenueData) -> Tuple[int, bool]:
        """Create or update by identity; returns ``(venue_id, created)``."""
        venue_id = self.find_by_identifier(venue.identity)
        if venue_id is None:
            return self.create(venue), True
        self.update(venue_id, venue)
        return venue_id, False

    def save_rooms(self, venue_id: int, rooms: Iterable[CrawledRoomData]) -> int:
        """Replace the venue's room list when the crawl found any rooms."""
        rooms = list(rooms)
        if rooms:
            self._rooms[venue_id] = copy.deepcopy(rooms)
        return len(rooms)

    def rooms_for(self, venue_id: int) -> List[CrawledRoomData]:
        return list(self._rooms.get(venue_id, []))

    def save_reviews(self, venue_id: int, reviews: Iterable[CrawledReviewData]) -> int:
        """Insert reviews not already stored for the venue; returns how many were new."""
        existing = self._reviews[venue_id]
        seen = {(r.text, r.rating) for r in existing}
        inserted = 0
        for review in reviews:
            key = (review.text, review.rating)
            if key in seen:
                continue
            seen.add(key)
            existing.append(copy.deepcopy(review))
            inserted += 1
        return inserted

    def reviews_for(self, venue_id: int) -> List[CrawledReviewData]:
        return list(self._reviews.get(venue_id, []))
