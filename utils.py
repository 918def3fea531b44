"""Utility functions for the venue crawler.

This module contains helper routines for extracting information using
regular expressions, resolving URLs and deduplicating records.  Isolating
these concerns outside of the browser code simplifies testing and keeps
the crawlers focused on browser automation.  Every parser here returns
``None`` when nothing usable is found instead of raising.
"""

from __future__ import annotations

import datetime
import re
import urllib.parse
from typing import Callable, Hashable, Iterable, List, Optional, Tuple, TypeVar

import pandas as pd


T = TypeVar("T")

_WS_RE = re.compile(r"\s+")
_COORDS_AT_RE = re.compile(r"@(-?\d+(?:\.\d+)?),(-?\d+(?:\.\d+)?)")
_COORDS_QUERY_RE = re.compile(r"(?:ll|q)=(-?\d+(?:\.\d+)?),(-?\d+(?:\.\d+)?)")
_PLACE_ID_RE = re.compile(r"!1s([^!?&#]+)")
_RATING_RE = re.compile(r"(\d+(?:[.,]\d+)?)")
_REVIEW_COUNT_RE = re.compile(r"([\d,.]+)\s*reviews?", re.I)
_STARS_RE = re.compile(r"([\d.]+)\s*stars?", re.I)
_PLAYERS_RE = re.compile(r"(\d+)\s*(?:-|–|—|to)\s*(\d+)\s*(?:players?|people|persons?)", re.I)
_DURATION_RE = re.compile(r"(\d+)\s*(?:min|minute)", re.I)
_PRICE_RE = re.compile(r"\$\s*(\d+(?:\.\d{2})?)")
_FIRST_INT_RE = re.compile(r"(\d+)")
_RELATIVE_RE = re.compile(r"\b(\d+|an?|one)\s+(day|week|month|year)s?\s+ago")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DASH_RE = re.compile(r"-+")
_STYLE_URL_RE = re.compile(r"url\(\s*['\"]?(.*?)['\"]?\s*\)")
_PHOTO_WH_RE = re.compile(r"=w\d+-h\d+")
_PHOTO_S_RE = re.compile(r"=s\d+")
_PHOTO_SUFFIX_RE = re.compile(r"-w\d+-h\d+(?=\.[a-zA-Z]+$)")
# Material icon glyphs (checkmarks, crosses) live in the private use area.
_ICON_GLYPH_RE = re.compile("[\ue000-\uf8ff]")

PHOTO_WIDTH = 800
PHOTO_HEIGHT = 600


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and strip the ends."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def strip_label(prefix: str) -> Callable[[Optional[str]], str]:
    """Build a transform that removes a leading label such as ``Address:``."""

    def _transform(text: Optional[str]) -> str:
        cleaned = clean_text(text)
        if cleaned.lower().startswith(prefix.lower()):
            cleaned = cleaned[len(prefix):].strip()
        return cleaned

    return _transform


def parse_coords_from_url(url: str) -> Optional[Tuple[float, float]]:
    """Parse latitude and longitude from a URL.

    Map search services encode the map centre or selected location
    coordinates in the URL as `@lat,lng` or `ll=lat,lng`.  This
    function decodes percent-encoded characters and searches for
    patterns matching these formats.  If no coordinates are found
    `None` is returned.
    """
    if not url:
        return None
    decoded = urllib.parse.unquote(url)
    decoded = decoded.replace("@ ", "@").replace(" @", "@")
    for pattern in (_COORDS_AT_RE, _COORDS_QUERY_RE):
        m = pattern.search(decoded)
        if m:
            try:
                return float(m.group(1)), float(m.group(2))
            except ValueError:
                continue
    return None


def extract_place_id(href: Optional[str]) -> Optional[str]:
    """Return the stable place identifier embedded in a place URL.

    Place URLs carry the identifier in a ``!1s<id>`` data segment.  When
    that segment is missing the raw href itself is used so that the same
    link is still recognised on a second encounter.
    """
    if not href:
        return None
    m = _PLACE_ID_RE.search(href)
    if m:
        return urllib.parse.unquote(m.group(1))
    return href.strip() or None


def parse_rating(text: Optional[str]) -> Optional[float]:
    """Parse a venue rating such as ``4,7`` or ``4.5``; values above 5 are rejected."""
    m = _RATING_RE.search(clean_text(text))
    if not m:
        return None
    try:
        value = float(m.group(1).replace(",", "."))
    except ValueError:
        return None
    if value < 0 or value > 5:
        return None
    return value


def parse_review_count(text: Optional[str]) -> Optional[int]:
    """Parse ``"1,234 reviews"`` into ``1234``."""
    m = _REVIEW_COUNT_RE.search(clean_text(text))
    if not m:
        return None
    digits = re.sub(r"[,.]", "", m.group(1))
    return int(digits) if digits.isdigit() else None


def parse_star_rating(text: Optional[str]) -> Optional[float]:
    """Parse an aria-label like ``"4 stars"`` or ``"4.5 stars"``."""
    m = _STARS_RE.search(text or "")
    if not m:
        return None
    try:
        return float(m.group(1))
    except ValueError:
        return None


def parse_player_range(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse ``"2-6 players"`` style ranges; the pair is always ordered low to high."""
    m = _PLAYERS_RE.search(text or "")
    if not m:
        return None
    low, high = int(m.group(1)), int(m.group(2))
    return (low, high) if low <= high else (high, low)


def parse_duration(text: Optional[str]) -> Optional[int]:
    m = _DURATION_RE.search(text or "")
    if not m:
        return None
    minutes = int(m.group(1))
    return minutes or None


def parse_price(text: Optional[str]) -> Optional[float]:
    m = _PRICE_RE.search(text or "")
    return float(m.group(1)) if m else None


def parse_first_int(text: Optional[str]) -> Optional[int]:
    m = _FIRST_INT_RE.search(text or "")
    return int(m.group(1)) if m else None


def parse_relative_date(
    text: Optional[str], now: Optional[datetime.datetime] = None
) -> Optional[datetime.datetime]:
    """Resolve a relative date such as ``"3 weeks ago"`` to an absolute timestamp.

    ``today`` and ``yesterday`` are understood as well as the article
    forms ``"a month ago"``.  Months and years are subtracted on the
    calendar (via :class:`pandas.DateOffset`) rather than as fixed day
    counts.  Returns ``None`` for anything else.
    """
    if not text:
        return None
    now = now or datetime.datetime.now(datetime.timezone.utc)
    lowered = clean_text(text).lower()
    if "today" in lowered:
        return now
    if "yesterday" in lowered:
        return now - datetime.timedelta(days=1)
    m = _RELATIVE_RE.search(lowered)
    if not m:
        return None
    amount = 1 if m.group(1) in ("a", "an", "one") else int(m.group(1))
    unit = m.group(2)
    if unit == "day":
        return now - datetime.timedelta(days=amount)
    if unit == "week":
        return now - datetime.timedelta(weeks=amount)
    offset = pd.DateOffset(months=amount) if unit == "month" else pd.DateOffset(years=amount)
    return (pd.Timestamp(now) - offset).to_pydatetime()


def slugify(name: str) -> str:
    """Lowercase, strip punctuation and hyphenate a display name."""
    slug = (name or "").lower()
    slug = _SLUG_STRIP_RE.sub("", slug)
    slug = _SLUG_SPACE_RE.sub("-", slug)
    slug = _SLUG_DASH_RE.sub("-", slug)
    return slug.strip("-")


def absolute_url(href: Optional[str], base: Optional[str] = None) -> Optional[str]:
    """Resolve ``href`` against ``base``; protocol-relative links get https."""
    href = (href or "").strip()
    if not href:
        return None
    if href.startswith("//"):
        return "https:" + href
    if re.match(r"^https?://", href, re.I):
        return href
    if base:
        return urllib.parse.urljoin(base, href)
    return None


def http_url(value: Optional[str]) -> Optional[str]:
    """Keep ``value`` only when it is an absolute http(s) URL."""
    value = (value or "").strip()
    if value.startswith("//"):
        value = "https:" + value
    return value if value.lower().startswith("http") else None


def url_from_style(style: Optional[str]) -> Optional[str]:
    """Pull the ``url(...)`` out of an inline ``background-image`` style."""
    match = _STYLE_URL_RE.search(style or "")
    if not match:
        return None
    return http_url(match.group(1))


def upgrade_photo_url(url: Optional[str]) -> Optional[str]:
    """Rewrite the size parameters of a map photo URL to 800x600.

    Thumbnails carry their size as ``=w100-h100``, ``=s100`` or a
    ``-w100-h100.jpg`` suffix.  A bare googleusercontent URL gets the size
    appended; any other URL is returned unchanged.
    """
    if not url:
        return url
    size = f"w{PHOTO_WIDTH}-h{PHOTO_HEIGHT}"
    if _PHOTO_WH_RE.search(url):
        return _PHOTO_WH_RE.sub("=" + size, url)
    if _PHOTO_S_RE.search(url):
        return _PHOTO_S_RE.sub(f"=s{PHOTO_WIDTH}", url)
    if _PHOTO_SUFFIX_RE.search(url):
        return _PHOTO_SUFFIX_RE.sub("-" + size, url)
    if "googleusercontent.com" in url and "=" not in url:
        return f"{url}={size}"
    return url


def strip_icon_glyphs(text: Optional[str]) -> str:
    return clean_text(_ICON_GLYPH_RE.sub("", text or ""))


def unique_by(items: Iterable[T], key: Callable[[T], Hashable]) -> List[T]:
    """Deduplicate ``items`` by ``key``; the first occurrence of a key is kept."""
    seen: set = set()
    unique: List[T] = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        unique.append(item)
    return unique