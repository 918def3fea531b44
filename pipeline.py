"""Location crawl orchestrator.

:func:`crawl_location` ties the pieces together: map-search discovery for
one location, then room extraction for every venue that lists a website
(only for venue kinds whose sites list rooms), then (optionally)
persistence.  Room crawls run concurrently, one browser
context per venue, bounded by ``settings.room_crawl_concurrency``.  A
failing website costs only that venue's rooms.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from playwright.async_api import async_playwright

from browser import ensure_chromium, launch_browser
from heuristics import get_venue_kind
from images import LocalImageStore
from models import CrawledRoomData, CrawledVenueData, CrawlSummary, ScrapeResult
from progress import ProgressLog
from room_extractor import crawl_venue_website
from scraper import discover_venues, normalize_max_results
from settings import CrawlSettings


RoomFetcher = Callable[[str], Awaitable[List[CrawledRoomData]]]
Discoverer = Callable[..., Awaitable[Any]]


async def attach_rooms(
    venues: Sequence[CrawledVenueData],
    fetch_rooms: RoomFetcher,
    *,
    concurrency: int,
    progress: ProgressLog,
    summary: CrawlSummary,
) -> None:
    """Fill ``venue.rooms`` for every venue with a website."""
    semaphore = asyncio.Semaphore(concurrency)

    async def one(venue: CrawledVenueData) -> None:
        async with semaphore:
            try:
                rooms = await fetch_rooms(venue.website)
            except Exception as exc:
                summary.errors += 1
                progress.emit(
                    "extraction_error",
                    f"Error crawling rooms for {venue.name}: {exc}",
                    level=logging.WARNING,
                    url=venue.website,
                )
                return
        venue.rooms = list(rooms)
        summary.rooms_found += len(venue.rooms)
        progress.emit(
            "rooms_extracted",
            f"{venue.name}: {len(venue.rooms)} rooms from {venue.website}",
            name=venue.name,
            count=len(venue.rooms),
        )

    await asyncio.gather(*(one(v) for v in venues if v.website))


async def crawl_rooms_with_browser(
    venues: Sequence[CrawledVenueData],
    settings: CrawlSettings,
    progress: ProgressLog,
    summary: CrawlSummary,
) -> None:
    """Room crawls sharing one browser, each in its own context."""
    if not any(v.website for v in venues):
        return
    if settings.auto_install_browser:
        ensure_chromium(progress.logger)
    async with async_playwright() as p:
        browser = await launch_browser(p, settings)
        try:

            async def fetch(url: str) -> List[CrawledRoomData]:
                return await crawl_venue_website(
                    url, browser=browser, settings=settings, logger=progress.logger
                )

            await attach_rooms(
                venues,
                fetch,
                concurrency=settings.room_crawl_concurrency,
                progress=progress,
                summary=summary,
            )
        finally:
            await browser.close()


def persist(
    venues: Sequence[CrawledVenueData],
    repository: Any,
    progress: ProgressLog,
    summary: CrawlSummary,
) -> None:
    """Upsert venues, then their rooms and reviews, into ``repository``."""
    for venue in venues:
        try:
            venue_id, created = repository.upsert(venue)
            repository.save_rooms(venue_id, venue.rooms)
            summary.reviews_added += repository.save_reviews(venue_id, venue.reviews)
        except Exception as exc:
            summary.errors += 1
            progress.emit(
                "extraction_error",
                f"Error saving venue {venue.name}: {exc}",
                level=logging.ERROR,
                name=venue.name,
            )
            continue
        if created:
            summary.venues_added += 1
        else:
            summary.venues_updated += 1


async def crawl_location(
    location: str,
    max_results: Optional[int] = 20,
    *,
    kind: str = "escape_room",
    settings: Optional[CrawlSettings] = None,
    crawl_rooms: bool = True,
    repository: Optional[Any] = None,
    image_store: Optional[Any] = None,
    download_images: bool = True,
    logger: Optional[logging.Logger] = None,
    discover: Optional[Discoverer] = None,
    fetch_rooms: Optional[RoomFetcher] = None,
) -> ScrapeResult:
    """Discover venues for ``location``, crawl their rooms and persist them.

    ``discover`` and ``fetch_rooms`` default to the browser-backed
    implementations and can be replaced, e.g. to reuse venues from an
    earlier run or to crawl rooms through another transport.
    """
    settings = settings or CrawlSettings.from_env()
    venue_kind = get_venue_kind(kind)
    progress = ProgressLog(logger or logging.getLogger(__name__))
    summary = CrawlSummary(location=location)
    if image_store is None and download_images:
        image_store = LocalImageStore(settings.image_root, timeout_s=settings.image_timeout_s)

    progress.emit("run_started", f"Starting {venue_kind.key} crawl for {location}", location=location)
    venues, error = await (discover or discover_venues)(
        location,
        max_results,
        kind=venue_kind,
        settings=settings,
        progress=progress,
        summary=summary,
        image_store=image_store,
    )

    if crawl_rooms and venues and not venue_kind.crawls_rooms:
        progress.emit(
            "rooms_skipped",
            f"Skipping website room crawl: {venue_kind.key} venues list no rooms",
            kind=venue_kind.key,
        )
    elif crawl_rooms and venues:
        try:
            if fetch_rooms is not None:
                await attach_rooms(
                    venues,
                    fetch_rooms,
                    concurrency=settings.room_crawl_concurrency,
                    progress=progress,
                    summary=summary,
                )
            else:
                await crawl_rooms_with_browser(venues, settings, progress, summary)
        except Exception as exc:
            progress.logger.exception("Room crawl for %s failed", location)
            progress.emit("run_failed", f"Room crawl failed: {exc}", level=logging.ERROR)
            error = error or exc

    if repository is not None:
        persist(venues, repository, progress, summary)

    summary.finish(len(venues), error)
    progress.emit(
        "run_finished",
        f"Crawl complete for {location}: {len(venues)} venues, {summary.rooms_found} rooms "
        f"({summary.venues_added} added, {summary.venues_updated} updated, status {summary.status})",
    )
    return ScrapeResult(venues=list(venues), summary=summary, log_lines=progress.lines, events=progress.events)


def run_location(
    location: str,
    max_results: Optional[int] = 20,
    kind: str = "escape_room",
    headless: bool = True,
    crawl_rooms: bool = True,
    extract_reviews: bool = False,
    repository: Optional[Any] = None,
    logger: Optional[logging.Logger] = None,
) -> ScrapeResult:
    """Synchronous wrapper around :func:`crawl_location`."""
    settings = CrawlSettings.from_env(headless=headless, extract_reviews=extract_reviews)
    return asyncio.run(
        crawl_location(
            location,
            normalize_max_results(max_results),
            kind=kind,
            settings=settings,
            crawl_rooms=crawl_rooms,
            repository=repository,
            logger=logger or logging.getLogger(__name__),
        )
    )
