"""Room extraction from a venue's own website.

Given the homepage URL the extractor looks for an internal link to a
rooms/games page, follows it, and then tries two strategies in order:

1. the *card strategy*: repeated DOM blocks (``CARD_SELECTORS``), each
   parsed into a room with regex-derived players, duration and price;
2. the *heading fallback*: plausible ``h1``-``h4`` headings become rooms
   with default attributes.

The fallback only runs when the card strategy produced nothing.  Any
navigation failure results in an empty list; it is logged and never
raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import Any, Dict, Iterable, List, Optional

from playwright.async_api import Error as PlaywrightError, async_playwright

from browser import ensure_chromium, goto, launch_browser, new_context
from heuristics import DEFAULT_DIFFICULTY, infer_difficulty, infer_theme, is_plausible_name
from models import DEFAULT_DURATION_MINUTES, DEFAULT_MAX_PLAYERS, DEFAULT_MIN_PLAYERS, CrawledRoomData
from selectors_def import (
    CARD_SCAN_JS,
    CARD_SELECTORS,
    HEADING_SCAN_JS,
    HEADING_SELECTOR,
    LINK_SCAN_JS,
    ROOM_LINK_KEYWORDS,
)
from settings import CrawlSettings
from utils import absolute_url, clean_text, parse_duration, parse_player_range, parse_price, unique_by


logger = logging.getLogger(__name__)

_SKIP_HREF_PREFIXES = ("#", "mailto:", "tel:", "javascript:")


def _host(url: str) -> str:
    host = urllib.parse.urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def find_room_page_url(
    links: Iterable[Dict[str, str]],
    base_url: str,
    keywords: Iterable[str] = ROOM_LINK_KEYWORDS,
) -> Optional[str]:
    """Return the first internal link whose text or href mentions a room keyword."""
    keywords = [k.lower() for k in keywords]
    base_host = _host(base_url)
    for link in links:
        text = clean_text(link.get("text"))
        href = (link.get("href") or "").strip()
        if not text or not href or href.lower().startswith(_SKIP_HREF_PREFIXES):
            continue
        combined = f"{text} {href}".lower()
        if not any(k in combined for k in keywords):
            continue
        resolved = absolute_url(href, base_url)
        if resolved and _host(resolved) == base_host:
            return resolved
    return None


def room_from_card(raw: Dict[str, Any], page_url: Optional[str] = None) -> Optional[CrawledRoomData]:
    """Build a room from one scanned card, or ``None`` when its name is implausible."""
    name = clean_text(raw.get("name"))
    if not is_plausible_name(name):
        return None
    description = clean_text(raw.get("description")) or None
    text = raw.get("text") or ""
    players = parse_player_range(text)
    min_players, max_players = players or (DEFAULT_MIN_PLAYERS, DEFAULT_MAX_PLAYERS)
    return CrawledRoomData(
        name=name,
        theme=clean_text(raw.get("theme")) or infer_theme(name, description),
        difficulty=infer_difficulty(text) or DEFAULT_DIFFICULTY,
        min_players=min_players,
        max_players=max_players,
        duration_minutes=parse_duration(text) or DEFAULT_DURATION_MINUTES,
        price=parse_price(text),
        description=description,
        image_url=absolute_url(raw.get("imageUrl"), page_url),
    )


def room_from_heading(raw: Dict[str, Any], page_url: Optional[str] = None) -> Optional[CrawledRoomData]:
    name = clean_text(raw.get("name"))
    if not is_plausible_name(name):
        return None
    description = clean_text(raw.get("description")) or None
    return CrawledRoomData(
        name=name,
        theme=infer_theme(name, description),
        description=description,
        image_url=absolute_url(raw.get("imageUrl"), page_url),
    )


async def extract_cards(page: Any, page_url: Optional[str] = None) -> List[CrawledRoomData]:
    """Card strategy: stop at the first selector that yields a plausible room."""
    for selector in CARD_SELECTORS:
        try:
            raws = await page.eval_on_selector_all(selector, CARD_SCAN_JS)
        except PlaywrightError as exc:
            logger.debug("Card selector %s failed: %s", selector, exc)
            continue
        rooms = [room for room in (room_from_card(raw, page_url) for raw in raws) if room]
        if rooms:
            logger.debug("Card selector %s produced %d rooms", selector, len(rooms))
            return rooms
    return []


async def extract_headings(page: Any, page_url: Optional[str] = None) -> List[CrawledRoomData]:
    """Heading fallback for pages without any card structure."""
    try:
        raws = await page.eval_on_selector_all(HEADING_SELECTOR, HEADING_SCAN_JS)
    except PlaywrightError as exc:
        logger.warning("Error extracting from generic content: %s", exc)
        return []
    return [room for room in (room_from_heading(raw, page_url) for raw in raws) if room]


async def extract_rooms(page: Any, page_url: Optional[str] = None) -> List[CrawledRoomData]:
    rooms = await extract_cards(page, page_url)
    if not rooms:
        rooms = await extract_headings(page, page_url)
    return unique_by(rooms, key=lambda room: room.name.lower())


async def extract_rooms_from_site(
    page: Any,
    website_url: str,
    settings: CrawlSettings,
    log: logging.Logger = logger,
) -> List[CrawledRoomData]:
    """Visit the homepage, follow the rooms link if any, and extract rooms."""
    log.info("Visiting venue website: %s", website_url)
    await goto(page, website_url, settings)

    try:
        links = await page.eval_on_selector_all("a", LINK_SCAN_JS)
    except PlaywrightError as exc:
        log.debug("Could not scan links on %s: %s", website_url, exc)
        links = []

    target_url = page.url or website_url
    room_page_url = find_room_page_url(links, target_url)
    if room_page_url:
        log.info("Found rooms page: %s", room_page_url)
        try:
            await page.goto(
                room_page_url, timeout=settings.navigation_timeout_ms, wait_until="networkidle"
            )
        except PlaywrightError:
            await goto(page, room_page_url, settings)
        target_url = room_page_url

    rooms = await extract_rooms(page, target_url)
    log.info("Extracted %d rooms from %s", len(rooms), target_url)
    return rooms


async def crawl_venue_website(
    website_url: Optional[str],
    *,
    browser: Optional[Any] = None,
    settings: Optional[CrawlSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CrawledRoomData]:
    """Extract rooms from one venue website; never raises, returns [] on failure.

    Pass a running ``browser`` to share it between concurrent crawls; a
    fresh context is opened per call and closed afterwards.  Without one,
    a browser is launched for this call only.
    """
    log = logger or logging.getLogger(__name__)
    if not website_url:
        return []
    settings = settings or CrawlSettings.from_env()
    try:
        if browser is not None:
            return await _crawl_in_context(browser, website_url, settings, log)
        if settings.auto_install_browser:
            ensure_chromium(log)
        async with async_playwright() as p:
            own_browser = await launch_browser(p, settings)
            try:
                return await _crawl_in_context(own_browser, website_url, settings, log)
            finally:
                await own_browser.close()
    except Exception:
        log.exception("Error crawling venue website %s", website_url)
        return []


async def _crawl_in_context(
    browser: Any, website_url: str, settings: CrawlSettings, log: logging.Logger
) -> List[CrawledRoomData]:
    context = await new_context(browser, settings)
    try:
        page = await context.new_page()
        return await extract_rooms_from_site(page, website_url, settings, log)
    finally:
        await context.close()


def scrape_rooms(
    website_url: str, headless: bool = True, logger: Optional[logging.Logger] = None
) -> List[CrawledRoomData]:
    """Synchronous wrapper around :func:`crawl_venue_website`."""
    settings = CrawlSettings.from_env(headless=headless)
    return asyncio.run(crawl_venue_website(website_url, settings=settings, logger=logger))
