"""Map-search crawling logic.

This module encapsulates the browser automation against the map search
UI.  It exposes :func:`crawl_venues` (async) and :func:`scrape_venues`
(sync wrapper) which accept a location, build several query variants,
launch a Chromium instance (honouring the headless flag) and walk every
result list.  For each result the detail panel is opened and the fields
are extracted through the selector cascades in ``selectors_def``.  Where
a value cannot be extracted it is left as ``None``; a bad candidate or a
bad query variant is logged and skipped rather than aborting the run.

Progress is reported through :class:`progress.ProgressLog`.  The calling
code is responsible for configuring logging handlers and presenting log
messages to the user.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import Any, Dict, List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError, async_playwright

from browser import ensure_chromium, goto, launch_browser, new_context
from consent import dismiss_consent, looks_blocked_by_consent
from heuristics import VenueKind, get_venue_kind, matches_category, passes_name_filter
from images import LocalImageStore
from ledger import DeduplicationLedger
from models import CrawledReviewData, CrawledVenueData, CrawlSummary, ScrapeResult
from progress import ProgressLog
from resolver import resolve_field
from selectors_def import (
    ABOUT_TAB_SELECTORS,
    ADDRESS_RULES,
    ATTRIBUTE_ITEM_SELECTOR,
    ATTRIBUTE_LABEL_RULES,
    ATTRIBUTE_SECTION_SELECTOR,
    ATTRIBUTE_TITLE_RULES,
    BACK_SELECTORS,
    CATEGORY_RULES,
    DESCRIPTION_RULES,
    DETAIL_PANEL_SELECTOR,
    FEED_SELECTORS,
    HOURS_BUTTON_SELECTORS,
    HOURS_DAY_RULES,
    HOURS_ROW_SELECTORS,
    HOURS_RULES,
    HOURS_TIME_RULES,
    IMAGE_RULES,
    MAP_SEARCH_URL,
    NAME_RULES,
    PHONE_RULES,
    PHOTO_TILE_SELECTORS,
    PHOTOS_TAB_SELECTORS,
    PLACE_LINK_SELECTORS,
    QUERY_TEMPLATES,
    RATING_RULES,
    REVIEW_AUTHOR_RULES,
    REVIEW_COUNT_SELECTOR,
    REVIEW_DATE_RULES,
    REVIEW_HELPFUL_RULES,
    REVIEW_ITEM_SELECTOR,
    REVIEW_MORE_SELECTORS,
    REVIEW_RATING_RULES,
    REVIEW_TEXT_RULES,
    REVIEWS_TAB_SELECTORS,
    SCROLL_FEED_JS,
    SCROLL_REVIEWS_JS,
    WEBSITE_RULES,
)
from settings import CrawlSettings
from utils import (
    clean_text,
    extract_place_id,
    parse_coords_from_url,
    parse_first_int,
    parse_relative_date,
    parse_review_count,
    parse_star_rating,
    strip_icon_glyphs,
    unique_by,
    upgrade_photo_url,
    url_from_style,
)


DAYS_PER_WEEK = 7
# Fewer readable rows than this and the one-line hours summary is used.
MIN_HOURS_DAYS = 5


def build_queries(kind: VenueKind, location: str) -> List[str]:
    """Query variants for ``location``, e.g. ``"escape rooms in Los Angeles"``."""
    location = clean_text(location)
    return [t.format(subject=kind.subject, location=location) for t in QUERY_TEMPLATES]


def normalize_max_results(value) -> Optional[int]:
    """Positive int bound, or ``None`` (no bound) for 0, blanks and junk."""
    if not value:
        return None
    try:
        bound = int(value)
    except (TypeError, ValueError):
        return None
    return bound if bound > 0 else None


def build_search_url(query: str) -> str:
    return MAP_SEARCH_URL.format(query=urllib.parse.quote(query))


class MapSearchSession:
    """Drives one page through the query variants of a single run.

    The session owns the run's :class:`DeduplicationLedger` and the list of
    accepted venues, so nothing is shared between concurrent sessions.
    Per variant the steps are: navigate, await the feed, scroll, enumerate
    candidates, then open, extract and accept each candidate in turn.
    """

    def __init__(
        self,
        page: Any,
        *,
        kind: VenueKind,
        settings: CrawlSettings,
        image_store: Optional[Any] = None,
        ledger: Optional[DeduplicationLedger] = None,
        progress: Optional[ProgressLog] = None,
        summary: Optional[CrawlSummary] = None,
    ) -> None:
        self.page = page
        self.kind = kind
        self.settings = settings
        self.image_store = image_store
        self.ledger = ledger if ledger is not None else DeduplicationLedger()
        self.progress = progress or ProgressLog()
        self.summary = summary or CrawlSummary()
        self.venues: List[CrawledVenueData] = []

    # ------------------------------------------------------------------ run
    async def run(
        self,
        location: str,
        max_results: Optional[int] = None,
        queries: Optional[Sequence[str]] = None,
    ) -> List[CrawledVenueData]:
        """Run every query variant and return the accepted venues.

        ``max_results`` bounds the whole run; each variant may contribute
        at most ``max_results // len(queries) + 1`` venues.
        """
        queries = list(queries or build_queries(self.kind, location))
        per_variant = max_results // len(queries) + 1 if max_results else None

        for query in queries:
            if self._full(max_results):
                break
            try:
                await self.run_variant(query, per_variant, max_results)
            except Exception as exc:
                self.summary.errors += 1
                self.progress.emit(
                    "extraction_error",
                    f"Error crawling query '{query}': {exc}",
                    level=logging.ERROR,
                    query=query,
                )
        return self.venues

    async def run_variant(
        self, query: str, limit: Optional[int] = None, max_results: Optional[int] = None
    ) -> int:
        """Crawl one query variant; returns the number of venues it added."""
        self.summary.variants_run += 1
        url = build_search_url(query)
        self.progress.emit("variant_started", f"Searching map for: {query}", query=query, url=url)

        await goto(self.page, url, self.settings)
        await dismiss_consent(self.page, settle_ms=self.settings.consent_settle_ms)
        await self.page.wait_for_timeout(self.settings.settle_ms)

        if not await self.await_feed():
            self.summary.variants_abandoned += 1
            self.progress.emit(
                "variant_abandoned",
                f"No results container found for '{query}'",
                level=logging.WARNING,
                query=query,
            )
            if await looks_blocked_by_consent(self.page):
                self.progress.emit(
                    "consent_retry",
                    "Consent dialog may be blocking - attempting to dismiss",
                    level=logging.WARNING,
                    query=query,
                )
                await dismiss_consent(self.page, settle_ms=self.settings.consent_settle_ms)
            return 0

        await self.scroll_feed()
        links = await self.enumerate_candidates()
        self.progress.emit(
            "candidate_found", f"Found {len(links)} place links for '{query}'", query=query, count=len(links)
        )

        added = 0
        for index, link in enumerate(links, start=1):
            if limit and added >= limit:
                self.progress.debug("Reached max results (%s) for this query", limit)
                break
            if self._full(max_results):
                break
            try:
                venue = await self.process_candidate(link, index)
            except Exception as exc:
                self.summary.errors += 1
                self.progress.emit(
                    "extraction_error",
                    f"Error extracting place [{index}]: {exc}",
                    level=logging.WARNING,
                    query=query,
                )
                continue
            if venue is not None:
                added += 1
        return added

    def _full(self, max_results: Optional[int]) -> bool:
        return bool(max_results) and len(self.venues) >= max_results

    # ------------------------------------------------------------- the feed
    async def await_feed(self) -> Optional[str]:
        """Wait for the first result container to render; returns its selector."""
        for selector in FEED_SELECTORS:
            try:
                await self.page.wait_for_selector(selector, timeout=self.settings.feed_timeout_ms)
            except PlaywrightError:
                self.progress.debug("Feed selector not found: %s", selector)
                continue
            self.progress.debug("Found results container with selector: %s", selector)
            return selector
        return None

    async def scroll_feed(self) -> None:
        for _ in range(self.settings.scroll_rounds):
            await self.page.evaluate(SCROLL_FEED_JS)
            await self.page.wait_for_timeout(self.settings.scroll_pause_ms)

    async def enumerate_candidates(self) -> List[Any]:
        return await self._all_of_first_match(PLACE_LINK_SELECTORS)

    async def _all_of_first_match(self, selectors: Sequence[str]) -> List[Any]:
        """Every element of the first selector that matches anything."""
        for selector in selectors:
            try:
                found = await self.page.locator(selector).all()
            except PlaywrightError as exc:
                self.progress.debug("Selector %s failed: %s", selector, exc)
                continue
            if found:
                return found
        return []

    # ------------------------------------------------------------ candidates
    async def process_candidate(self, link: Any, index: int = 0) -> Optional[CrawledVenueData]:
        """Open one result and return the accepted venue, or ``None`` if skipped."""
        href = await link.get_attribute("href")
        if not href:
            return None

        # The list entry's label is more reliable than the detail heading.
        label = clean_text(await link.get_attribute("aria-label"))
        place_id = extract_place_id(href)
        self.summary.candidates_found += 1
        self.progress.debug("[%s] Found venue: %s", index, label)

        if not self.ledger.claim(place_id):
            self.summary.skipped_duplicate += 1
            self.progress.emit(
                "candidate_duplicate",
                f"Skipping duplicate place: {label or place_id}",
                level=logging.DEBUG,
                place_id=place_id,
            )
            return None

        await link.click()
        await self.page.wait_for_timeout(self.settings.click_settle_ms)
        try:
            await self.page.wait_for_selector(
                DETAIL_PANEL_SELECTOR, timeout=self.settings.detail_timeout_ms
            )
        except PlaywrightError:
            self.progress.emit(
                "extraction_error",
                f"Details panel didn't load for {label or place_id}; extracting what is there",
                level=logging.WARNING,
                place_id=place_id,
            )

        self.summary.processed += 1
        venue = await self.extract_venue(label)
        if not passes_name_filter(venue.name):
            self.summary.filtered += 1
            self.progress.emit(
                "venue_skipped",
                f"Venue filtered out (no usable name): {venue.name!r}",
                place_id=place_id,
            )
            return None

        venue.place_id = place_id
        venue.maps_url = href
        if venue.image_url:
            await self.store_image(venue)
        if venue.photo_urls:
            await self.store_photos(venue)

        self.venues.append(venue)
        rating = f"{venue.rating:.1f}" if venue.rating is not None else "N/A"
        self.progress.emit(
            "venue_saved",
            f"Extracted: {venue.name} | {venue.address or '-'} | {rating} ({venue.review_count or 0} reviews)",
            place_id=place_id,
            name=venue.name,
        )
        return venue

    async def extract_venue(self, preextracted_name: str = "") -> CrawledVenueData:
        """Populate a venue from the open detail panel; missing fields stay ``None``."""
        timeout = self.settings.field_timeout_ms
        page = self.page

        name = preextracted_name or await resolve_field(page, NAME_RULES, name="name", timeout_ms=timeout)
        venue = CrawledVenueData(name=name or "")

        venue.category = await resolve_field(page, CATEGORY_RULES, name="category", timeout_ms=timeout)
        venue.category_match = matches_category(f"{venue.name} {venue.category or ''}", self.kind)
        if not venue.category_match:
            # Kept: the caller decides what to do with ambiguous listings.
            self.progress.debug("Not an obvious %s: %s / %s", self.kind.key, venue.name, venue.category)

        venue.rating = await resolve_field(page, RATING_RULES, name="rating", timeout_ms=timeout)
        venue.review_count = await self.extract_review_count()
        venue.address = await resolve_field(page, ADDRESS_RULES, name="address", timeout_ms=timeout)
        venue.phone = await resolve_field(page, PHONE_RULES, name="phone", timeout_ms=timeout)
        venue.website = await resolve_field(page, WEBSITE_RULES, name="website", timeout_ms=timeout)
        venue.opening_hours = await self.extract_opening_hours()
        venue.description = await resolve_field(
            page, DESCRIPTION_RULES, name="description", timeout_ms=timeout
        )

        coords = parse_coords_from_url(page.url)
        if coords:
            venue.latitude, venue.longitude = coords

        venue.image_url = await resolve_field(page, IMAGE_RULES, name="image", timeout_ms=timeout)

        # Each of these opens a tab of the panel; the photo gallery is left
        # again before the next one.
        if self.settings.extract_photos:
            venue.photo_urls = await self.extract_photos()
        if self.settings.extract_reviews:
            venue.reviews = await self.extract_reviews()
        if self.settings.extract_attributes:
            venue.attributes = await self.extract_attributes()
        return venue

    async def extract_opening_hours(self) -> Optional[str]:
        """Per-day hours such as ``"Monday: 11 AM-10 PM; Tuesday: ..."``.

        The hours row is expanded first so the weekly table renders.  When
        fewer than ``MIN_HOURS_DAYS`` days can be read the one-line hours
        summary is returned instead.
        """
        page = self.page
        timeout = self.settings.field_timeout_ms
        await self._click_first_visible(page, HOURS_BUTTON_SELECTORS, self.settings.scroll_pause_ms)

        for selector in HOURS_ROW_SELECTORS:
            try:
                rows = await page.locator(selector).all()
            except PlaywrightError:
                continue
            if len(rows) < DAYS_PER_WEEK:
                continue
            days = []
            for row in rows[:DAYS_PER_WEEK]:
                day = await resolve_field(row, HOURS_DAY_RULES, name="hours day", timeout_ms=timeout)
                hours = await resolve_field(row, HOURS_TIME_RULES, name="hours time", timeout_ms=timeout)
                if day and hours:
                    days.append(f"{day}: {hours}")
            if len(days) >= MIN_HOURS_DAYS:
                self.progress.debug("Extracted %s days of opening hours via %s", len(days), selector)
                return "; ".join(days)

        return await resolve_field(page, HOURS_RULES, name="hours", timeout_ms=timeout)

    async def extract_review_count(self) -> Optional[int]:
        try:
            elements = await self.page.locator(REVIEW_COUNT_SELECTOR).all()
        except PlaywrightError:
            return None
        for element in elements:
            try:
                count = parse_review_count(await element.text_content())
            except PlaywrightError:
                continue
            if count is not None:
                return count
        return None

    async def store_image(self, venue: CrawledVenueData) -> None:
        if self.image_store is None:
            return
        try:
            venue.local_image_path = await self.image_store.save_from_url(
                venue.image_url, "venues", venue.name
            )
        except Exception as exc:
            self.progress.emit(
                "image_failed",
                f"Failed to download image for {venue.name}: {exc}",
                level=logging.WARNING,
                url=venue.image_url,
            )
            return
        self.summary.images_saved += 1

    # --------------------------------------------------------- photos, about
    async def extract_photos(self) -> List[str]:
        """Full-size URLs of up to ``settings.max_photos`` gallery photos."""
        page = self.page
        if not await self._click_first_visible(page, PHOTOS_TAB_SELECTORS, self.settings.click_settle_ms):
            return []
        urls: List[str] = []
        try:
            tiles = await self._all_of_first_match(PHOTO_TILE_SELECTORS)
            self.progress.debug("Found %s potential photos", len(tiles))
            for tile in tiles[: self.settings.max_photos]:
                try:
                    url = url_from_style(await tile.get_attribute("style"))
                except PlaywrightError:
                    continue
                if url:
                    urls.append(upgrade_photo_url(url))
        finally:
            await self._click_first_visible(page, BACK_SELECTORS, self.settings.scroll_pause_ms)
        return unique_by(urls, key=lambda url: url)

    async def store_photos(self, venue: CrawledVenueData) -> None:
        """Download the gallery in parallel; photos that fail are dropped.

        ``photo_urls`` and ``photo_local_paths`` stay index-aligned.
        Without an image store the URLs are kept as they are.
        """
        if self.image_store is None:
            return
        results = await asyncio.gather(
            *(self.image_store.save_from_url(url, "photos", venue.name) for url in venue.photo_urls),
            return_exceptions=True,
        )
        urls, paths = [], []
        for url, result in zip(venue.photo_urls, results):
            if isinstance(result, BaseException):
                self.progress.debug("Error downloading photo %s for %s: %s", url, venue.name, result)
                continue
            urls.append(url)
            paths.append(result)
        self.progress.debug("Downloaded %s/%s photos for %s", len(paths), len(venue.photo_urls), venue.name)
        venue.photo_urls, venue.photo_local_paths = urls, paths
        self.summary.images_saved += len(paths)

    async def extract_attributes(self) -> Dict[str, List[str]]:
        """Read the About tab into ``{category: [attribute, ...]}``."""
        page = self.page
        timeout = self.settings.field_timeout_ms
        attributes: Dict[str, List[str]] = {}
        if not await self._click_first_visible(page, ABOUT_TAB_SELECTORS, self.settings.click_settle_ms):
            return attributes
        try:
            for section in await page.locator(ATTRIBUTE_SECTION_SELECTOR).all():
                category = await resolve_field(
                    section, ATTRIBUTE_TITLE_RULES, name="attribute category", timeout_ms=timeout
                )
                if not category:
                    continue
                values = []
                for item in await section.locator(ATTRIBUTE_ITEM_SELECTOR).all():
                    text = strip_icon_glyphs(await item.text_content()) or await resolve_field(
                        item, ATTRIBUTE_LABEL_RULES, name="attribute label", timeout_ms=timeout
                    )
                    if text:
                        values.append(text)
                if values:
                    attributes[category] = values
        except PlaywrightError as exc:
            self.progress.emit("extraction_error", f"Error extracting attributes: {exc}", level=logging.WARNING)
        self.progress.debug("Extracted %s attribute categories", len(attributes))
        return attributes

    # --------------------------------------------------------------- reviews
    async def extract_reviews(self) -> List[CrawledReviewData]:
        """Read up to ``settings.max_reviews`` reviews from the Reviews tab."""
        reviews: List[CrawledReviewData] = []
        page = self.page
        try:
            await self._click_first_visible(page, REVIEWS_TAB_SELECTORS, self.settings.settle_ms)

            items = page.locator(REVIEW_ITEM_SELECTOR)
            if await items.count() > 0:
                for _ in range(self.settings.review_scroll_rounds):
                    await items.first.evaluate(SCROLL_REVIEWS_JS)
                    await page.wait_for_timeout(self.settings.scroll_pause_ms)

            total = await items.count()
            self.progress.debug("Found %s reviews", total)
            for i in range(min(total, self.settings.max_reviews)):
                try:
                    review = await self.read_review(items.nth(i))
                except PlaywrightError as exc:
                    self.progress.debug("Failed to extract review %s: %s", i, exc)
                    continue
                if review is not None:
                    reviews.append(review)
        except PlaywrightError as exc:
            self.progress.emit("extraction_error", f"Error extracting reviews: {exc}", level=logging.WARNING)
        return reviews

    async def read_review(self, item: Any) -> Optional[CrawledReviewData]:
        timeout = self.settings.field_timeout_ms
        await self._click_first_visible(item, REVIEW_MORE_SELECTORS, 500)

        author = await resolve_field(item, REVIEW_AUTHOR_RULES, name="review author", timeout_ms=timeout)
        rating_label = await resolve_field(item, REVIEW_RATING_RULES, name="review rating", timeout_ms=timeout)
        text = await resolve_field(item, REVIEW_TEXT_RULES, name="review text", timeout_ms=timeout)
        date_text = await resolve_field(item, REVIEW_DATE_RULES, name="review date", timeout_ms=timeout)
        helpful = await resolve_field(item, REVIEW_HELPFUL_RULES, name="review helpful", timeout_ms=timeout)

        rating = parse_star_rating(rating_label)
        if not author or not text or rating is None:
            return None
        return CrawledReviewData(
            author=author,
            rating=rating,
            text=text,
            review_date=parse_relative_date(date_text),
            helpful_count=parse_first_int(helpful),
        )

    async def _click_first_visible(self, scope: Any, selectors: Sequence[str], settle_ms: int) -> bool:
        for selector in selectors:
            target = scope.locator(selector).first
            try:
                if not await target.is_visible():
                    continue
                await target.click()
            except PlaywrightError:
                continue
            await self.page.wait_for_timeout(settle_ms)
            return True
        return False


async def discover_venues(
    location: str,
    max_results: Optional[int],
    *,
    kind: VenueKind,
    settings: CrawlSettings,
    progress: ProgressLog,
    summary: CrawlSummary,
    image_store: Optional[Any] = None,
    queries: Optional[Sequence[str]] = None,
) -> Tuple[List[CrawledVenueData], Optional[Exception]]:
    """Run one map-search session inside its own browser.

    The browser is closed on every exit path.  An unexpected error is
    logged and returned next to whatever venues were accumulated before
    it, so callers can still report a partial run.
    """
    session: Optional[MapSearchSession] = None
    try:
        if settings.auto_install_browser:
            ensure_chromium(progress.logger)
        async with async_playwright() as p:
            browser = await launch_browser(p, settings)
            try:
                context = await new_context(browser, settings)
                page = await context.new_page()
                session = MapSearchSession(
                    page,
                    kind=kind,
                    settings=settings,
                    image_store=image_store,
                    progress=progress,
                    summary=summary,
                )
                await session.run(location, max_results, queries)
            finally:
                await browser.close()
    except Exception as exc:
        progress.logger.exception("Crawl for %s failed", location)
        progress.emit("run_failed", f"Crawl failed: {exc}", level=logging.ERROR)
        return (session.venues if session else []), exc
    return session.venues, None


async def crawl_venues(
    location: str,
    max_results: Optional[int] = 20,
    *,
    kind: str = "escape_room",
    queries: Optional[Sequence[str]] = None,
    settings: Optional[CrawlSettings] = None,
    image_store: Optional[Any] = None,
    download_images: bool = True,
    logger: Optional[logging.Logger] = None,
) -> ScrapeResult:
    """Discover venues for ``location`` on the map search.

    Never raises for page-level problems: the run is reported as
    ``partial`` (or ``failed`` when nothing was collected) and whatever
    was accumulated is returned.
    """
    settings = settings or CrawlSettings.from_env()
    venue_kind = get_venue_kind(kind)
    progress = ProgressLog(logger or logging.getLogger(__name__))
    summary = CrawlSummary(location=location)
    if image_store is None and download_images:
        image_store = LocalImageStore(settings.image_root, timeout_s=settings.image_timeout_s)

    progress.emit("run_started", f"Starting {venue_kind.key} crawl for {location}", location=location)
    venues, error = await discover_venues(
        location,
        max_results,
        kind=venue_kind,
        settings=settings,
        progress=progress,
        summary=summary,
        image_store=image_store,
        queries=queries,
    )
    summary.finish(len(venues), error)
    progress.emit(
        "run_finished",
        f"Crawl complete for {location}: {len(venues)} venues "
        f"({summary.skipped_duplicate} duplicates skipped, status {summary.status})",
    )
    return ScrapeResult(venues=venues, summary=summary, log_lines=progress.lines, events=progress.events)


def scrape_venues(
    location: str,
    max_results: Optional[int] = 20,
    kind: str = "escape_room",
    headless: bool = True,
    extract_reviews: bool = False,
    logger: Optional[logging.Logger] = None,
) -> ScrapeResult:
    """Synchronously crawl venues for a location.

    Parameters
    ----------
    location : str
        Free-text location, e.g. ``"Los Angeles"``.
    max_results : int, optional
        Upper bound of venues to accept.  Use 0 or ``None`` for no bound.
    kind : str, optional
        Key of ``heuristics.VENUE_KINDS``, by default ``"escape_room"``.
    headless : bool, optional
        Whether to run the browser in headless mode, by default True.
    extract_reviews : bool, optional
        Also read recent reviews for every venue, by default False.
    logger : logging.Logger, optional
        Logger instance for recording progress messages.

    Returns
    -------
    ScrapeResult
        Accepted venues, the run summary and the progress log.
    """
    settings = CrawlSettings.from_env(headless=headless, extract_reviews=extract_reviews)
    return asyncio.run(
        crawl_venues(
            location,
            normalize_max_results(max_results),
            kind=kind,
            settings=settings,
            logger=logger or logging.getLogger(__name__),
        )
    )
