"""Runtime configuration for the crawlers.

Defaults mirror what works against the live map search UI.  Each field can
be overridden with an environment variable named ``VENUE_CRAWLER_`` plus
the upper-cased field name, e.g. ``VENUE_CRAWLER_SCROLL_ROUNDS=8``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional


BASE_DIR = Path(__file__).resolve().parent
ENV_PREFIX = "VENUE_CRAWLER_"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


@dataclass
class CrawlSettings:
    headless: bool = True
    auto_install_browser: bool = True

    # Timeouts (milliseconds)
    navigation_timeout_ms: int = 60000
    feed_timeout_ms: int = 5000
    field_timeout_ms: int = 1000
    detail_timeout_ms: int = 5000
    # Any other page action (clicks, attribute reads) on a context
    action_timeout_ms: int = 10000

    # Fixed waits (milliseconds)
    settle_ms: int = 3000
    click_settle_ms: int = 2500
    consent_settle_ms: int = 2000
    scroll_rounds: int = 5
    scroll_pause_ms: int = 1500

    navigation_attempts: int = 2

    extract_reviews: bool = False
    max_reviews: int = 10
    review_scroll_rounds: int = 3

    extract_photos: bool = True
    max_photos: int = 10
    extract_attributes: bool = True

    # Browser context identity
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "en-US"
    timezone_id: str = "America/New_York"
    viewport_width: int = 1920
    viewport_height: int = 1080

    image_root: str = str(BASE_DIR / "wwwroot")
    image_timeout_s: float = 30.0

    room_crawl_concurrency: int = 3

    def __post_init__(self) -> None:
        if self.room_crawl_concurrency < 1:
            raise ValueError("room_crawl_concurrency must be >= 1")
        if self.navigation_attempts < 1:
            raise ValueError("navigation_attempts must be >= 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "CrawlSettings":
        """Build settings from ``VENUE_CRAWLER_*`` variables, then ``overrides``."""
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _coerce(raw, type(getattr(cls, f.name)))
        values.update(overrides)
        return cls(**values)


def _coerce(raw: str, target: type):
    if target is bool:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if target is int:
        return int(raw)
    if target is float:
        return float(raw)
    return raw
