"""Records produced by the crawlers.

These are in-memory values handed to the persistence collaborator; the
crawler keeps no state about them once a run is over.
"""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from heuristics import DEFAULT_DIFFICULTY, DEFAULT_THEME


DEFAULT_MIN_PLAYERS = 2
DEFAULT_MAX_PLAYERS = 6
DEFAULT_DURATION_MINUTES = 60


@dataclass
class CrawledReviewData:
    author: str
    rating: int
    text: str
    review_date: Optional[datetime.datetime] = None
    helpful_count: Optional[int] = None

    def __post_init__(self) -> None:
        self.rating = normalize_review_rating(self.rating)


@dataclass
class CrawledRoomData:
    """A room (game) listed on a venue's own website.

    The constructor enforces the record invariants: difficulty is clamped
    to 1..5 and a reversed player range is swapped so that
    ``min_players <= max_players``.
    """

    name: str
    theme: str = DEFAULT_THEME
    difficulty: int = DEFAULT_DIFFICULTY
    min_players: int = DEFAULT_MIN_PLAYERS
    max_players: int = DEFAULT_MAX_PLAYERS
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    price: Optional[float] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        self.difficulty = min(5, max(1, int(self.difficulty)))
        if self.min_players > self.max_players:
            self.min_players, self.max_players = self.max_players, self.min_players


@dataclass
class CrawledVenueData:
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    opening_hours: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    maps_url: Optional[str] = None
    place_id: Optional[str] = None
    image_url: Optional[str] = None
    local_image_path: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    category_match: bool = False
    photo_urls: List[str] = field(default_factory=list)
    photo_local_paths: List[str] = field(default_factory=list)
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    rooms: List[CrawledRoomData] = field(default_factory=list)
    reviews: List[CrawledReviewData] = field(default_factory=list)

    @property
    def identity(self) -> Union[str, Tuple[str, str]]:
        """Place identifier when known, else the ``(name, address)`` pair."""
        if self.place_id:
            return self.place_id
        return (self.name.strip().lower(), (self.address or "").strip().lower())


@dataclass
class CrawlSummary:
    """Counters for one run, in the shape the operator console reports."""

    location: str = ""
    status: str = "in_progress"
    variants_run: int = 0
    variants_abandoned: int = 0
    candidates_found: int = 0
    processed: int = 0
    skipped_duplicate: int = 0
    filtered: int = 0
    errors: int = 0
    images_saved: int = 0
    rooms_found: int = 0
    venues_added: int = 0
    venues_updated: int = 0
    reviews_added: int = 0
    started_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
    completed_at: Optional[datetime.datetime] = None
    error_message: Optional[str] = None

    def finish(self, accumulated: int, error: Optional[BaseException] = None) -> None:
        self.completed_at = datetime.datetime.now(datetime.timezone.utc)
        if error is None:
            self.status = "success"
            return
        self.error_message = str(error)[:2000]
        self.status = "partial" if accumulated else "failed"


@dataclass
class ScrapeResult:
    """Container for the result of a crawl.

    Attributes
    ----------
    venues : list of CrawledVenueData
        Accepted venues, already deduplicated.
    summary : CrawlSummary
        Counters and final status of the run.
    log_lines : List[str]
        Progress messages, each prefixed with a timestamp.
    events : List[dict]
        The same progress as structured events.
    """

    venues: List[CrawledVenueData]
    summary: CrawlSummary
    log_lines: List[str] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def dataframe(self) -> pd.DataFrame:
        return venues_to_dataframe(self.venues)

    @property
    def rooms_dataframe(self) -> pd.DataFrame:
        return rooms_to_dataframe(self.venues)


def normalize_review_rating(value: Union[int, float, None]) -> int:
    """Round a scraped (possibly fractional) star value into 1..5."""
    if value is None:
        return 1
    return int(min(5, max(1, round(float(value)))))


def venues_to_dataframe(venues: List[CrawledVenueData]) -> pd.DataFrame:
    rows = []
    for venue in venues:
        row = asdict(venue)
        row.pop("rooms")
        row.pop("reviews")
        row["photo_urls"] = "\n".join(venue.photo_urls)
        row["photo_local_paths"] = "\n".join(venue.photo_local_paths)
        row["attributes"] = format_attributes(venue.attributes)
        row["room_count"] = len(venue.rooms)
        row["crawled_review_count"] = len(venue.reviews)
        rows.append(row)
    return pd.DataFrame(rows)


def format_attributes(attributes: Dict[str, List[str]]) -> str:
    """One line per category, e.g. ``Amenities: Wi-Fi, Restroom``."""
    return "\n".join(f"{category}: {', '.join(values)}" for category, values in attributes.items())


def rooms_to_dataframe(venues: List[CrawledVenueData]) -> pd.DataFrame:
    rows = []
    for venue in venues:
        for room in venue.rooms:
            row = {"venue": venue.name, "venue_place_id": venue.place_id}
            row.update(asdict(room))
            rows.append(row)
    return pd.DataFrame(rows)
