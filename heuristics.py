"""Classification heuristics shared by the map-search and website crawlers.

All rules are plain lookup tables so that each one can be asserted on its
own and extended without touching the crawling code:

* ``NAME_DENYLIST`` - site chrome that is never a venue or room name.
* ``LISTING_HEADINGS`` - rooms-page section titles, never a room name.
* ``ROOM_NAME_KEYWORDS`` - words that make a heading look like a room.
* ``THEME_KEYWORDS`` - ordered theme table, first match wins.
* ``DIFFICULTY_KEYWORDS`` - ordered difficulty table, first match wins.
* ``VENUE_KINDS`` - search subject and category keywords per venue type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from utils import clean_text


MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 100
MAX_PLAIN_NAME_WORDS = 6

DEFAULT_THEME = "Mystery"
DEFAULT_DIFFICULTY = 3

# Headings returned by the map UI itself rather than by a venue.
PLACEHOLDER_NAMES = frozenset({"results", "sponsored?", "sponsored"})

NAME_DENYLIST = frozenset(
    {
        "home", "about", "about us", "contact", "contact us", "book now",
        "book", "booking", "bookings", "faq", "faqs", "reviews", "gallery",
        "photos", "location", "locations", "directions", "gift cards",
        "gift card", "gift certificates", "team building", "corporate events",
        "birthday parties", "private events", "group events", "login",
        "log in", "sign in", "sign up", "register", "cart", "checkout",
        "terms", "privacy", "policy", "privacy policy", "careers", "jobs",
        "menu", "blog", "news", "pricing", "prices", "hours",
        "testimonials", "learn more", "read more", "more info", "our story",
        "newsletter", "follow us", "subscribe",
    }
)

# Section titles of a rooms page; rejected as room names but not as venue names.
LISTING_HEADINGS = frozenset(
    {
        "rooms", "our rooms", "all rooms", "the rooms", "escape rooms",
        "our escape rooms", "games", "our games", "all games", "the games",
        "escape games", "our escape games", "experiences", "our experiences",
        "adventures", "our adventures", "missions", "our missions",
        "choose your room", "choose your adventure", "pick your room",
        "book a room", "book your room", "rooms & pricing", "rooms and pricing",
    }
)

ROOM_NAME_KEYWORDS: Tuple[str, ...] = (
    "escape", "room", "mission", "adventure", "mystery", "puzzle", "quest",
    "vault", "heist", "prison", "asylum", "haunted", "zombie", "detective",
    "crime", "secret", "spy", "agent",
)

THEME_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Horror", ("horror", "zombie", "haunted", "asylum", "possessed", "demon",
                "evil", "dark", "nightmare", "terror")),
    ("Mystery", ("mystery", "detective", "murder", "crime", "investigation",
                 "sherlock", "clue")),
    ("Adventure", ("adventure", "treasure", "expedition", "explorer", "jungle",
                   "temple", "tomb")),
    ("Sci-Fi", ("space", "alien", "sci-fi", "future", "robot", "cyber",
                "laboratory", "experiment")),
    ("Fantasy", ("magic", "wizard", "dragon", "medieval", "castle",
                 "enchanted", "fairy")),
    ("Heist", ("heist", "bank", "vault", "robbery", "steal", "thief", "diamond")),
    ("Prison", ("prison", "jail", "escape", "cell", "warden", "inmate")),
    ("Spy", ("spy", "agent", "secret", "mission", "classified", "intelligence")),
    ("Historical", ("historical", "ancient", "egyptian", "roman", "pirate", "war")),
]

DIFFICULTY_KEYWORDS: List[Tuple[Tuple[str, ...], int]] = [
    (("easy", "beginner"), 2),
    (("medium", "moderate"), 3),
    (("hard", "difficult"), 4),
    (("expert", "extreme"), 5),
]


@dataclass(frozen=True)
class VenueKind:
    """What is being searched for: query subject plus category keywords.

    ``crawls_rooms`` is False for kinds whose websites list no rooms; the
    orchestrator then skips the website crawl for their venues.
    """

    key: str
    subject: str
    category_keywords: Tuple[str, ...]
    crawls_rooms: bool = True


VENUE_KINDS: Dict[str, VenueKind] = {
    "escape_room": VenueKind(
        key="escape_room",
        subject="escape rooms",
        category_keywords=(
            "escape room", "escape game", "room escape", "puzzle room",
            "exit game", "breakout", "escape experience", "live escape",
            "mystery room", "adventure room", "locked room",
        ),
    ),
    "board_game_cafe": VenueKind(
        key="board_game_cafe",
        subject="board game cafe",
        category_keywords=(
            "board game", "boardgame", "game cafe", "game café", "tabletop",
            "game store", "game bar",
        ),
        crawls_rooms=False,
    ),
}


def get_venue_kind(key: str) -> VenueKind:
    try:
        return VENUE_KINDS[key]
    except KeyError:
        raise ValueError(f"Unknown venue kind: {key!r}") from None


def is_placeholder_name(name: Optional[str]) -> bool:
    """True for empty names and the generic headings of the map result list."""
    cleaned = clean_text(name).lower()
    return not cleaned or cleaned in PLACEHOLDER_NAMES


def is_plausible_name(name: Optional[str]) -> bool:
    """Decide whether ``name`` looks like a room (or venue) name.

    Names outside 3..100 characters and exact (case-insensitive) matches
    of :data:`NAME_DENYLIST` or :data:`LISTING_HEADINGS` are rejected.
    Anything mentioning one of :data:`ROOM_NAME_KEYWORDS` is accepted;
    otherwise the name must be free of digits and at most six words long.
    """
    if not passes_name_filter(name):
        return False
    cleaned = clean_text(name)
    lowered = cleaned.lower()
    if lowered in LISTING_HEADINGS:
        return False
    if any(keyword in lowered for keyword in ROOM_NAME_KEYWORDS):
        return True
    has_digit = any(ch.isdigit() for ch in lowered)
    return not has_digit and len(cleaned.split(" ")) <= MAX_PLAIN_NAME_WORDS


def infer_theme(name: Optional[str], description: Optional[str] = None) -> str:
    """Scan :data:`THEME_KEYWORDS` in order against name and description."""
    text = f"{name or ''} {description or ''}".lower()
    for theme, keywords in THEME_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return theme
    return DEFAULT_THEME


def infer_difficulty(text: Optional[str]) -> Optional[int]:
    """Map the first difficulty word found in ``text`` to a 2..5 score."""
    lowered = (text or "").lower()
    for keywords, score in DIFFICULTY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return score
    return None


def matches_category(text: Optional[str], kind: VenueKind) -> bool:
    """Category plausibility signal: does name + category text mention the kind?"""
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in kind.category_keywords)


def passes_name_filter(name: Optional[str]) -> bool:
    """Hard part of the name filter: length bounds, denylist and placeholders.

    Venue names from the map listing go through this check only; the
    keyword/shape preference in :func:`is_plausible_name` is meant for
    headings scraped off arbitrary websites.
    """
    cleaned = clean_text(name)
    if len(cleaned) < MIN_NAME_LENGTH or len(cleaned) > MAX_NAME_LENGTH:
        return False
    lowered = cleaned.lower()
    return lowered not in NAME_DENYLIST and lowered not in PLACEHOLDER_NAMES


def venue_name(text: Optional[str]) -> str:
    """Transform for name selectors: cleaned text, or "" for map UI headings."""
    cleaned = clean_text(text)
    return "" if is_placeholder_name(cleaned) else cleaned
