"""Tests for the crawled records, settings and progress log."""

import logging

import pytest

from ledger import DeduplicationLedger
from models import (
    CrawledReviewData,
    CrawledRoomData,
    CrawledVenueData,
    CrawlSummary,
    ScrapeResult,
    normalize_review_rating,
)
from progress import ProgressLog
from settings import CrawlSettings


def test_room_invariants() -> None:
    room = CrawledRoomData(name="Vault", difficulty=9, min_players=8, max_players=3)
    assert room.difficulty == 5
    assert (room.min_players, room.max_players) == (3, 8)
    assert CrawledRoomData(name="Attic", difficulty=0).difficulty == 1
    assert CrawledRoomData(name="Attic").theme == "Mystery"


def test_review_rating_is_rounded_and_clamped() -> None:
    assert CrawledReviewData(author="A", rating=4.6, text="Great").rating == 5
    assert normalize_review_rating(0.2) == 1
    assert normalize_review_rating(None) == 1
    assert normalize_review_rating(3.4) == 3


def test_venue_identity() -> None:
    assert CrawledVenueData(name="Escape Lab", place_id="0xabc").identity == "0xabc"
    venue = CrawledVenueData(name=" Escape Lab ", address="1 Main St")
    assert venue.identity == ("escape lab", "1 main st")


def test_summary_status() -> None:
    summary = CrawlSummary(location="Los Angeles")
    summary.finish(3)
    assert summary.status == "success" and summary.completed_at is not None

    partial = CrawlSummary()
    partial.finish(2, RuntimeError("boom"))
    assert (partial.status, partial.error_message) == ("partial", "boom")

    failed = CrawlSummary()
    failed.finish(0, RuntimeError("boom"))
    assert failed.status == "failed"


def test_dataframes() -> None:
    venue = CrawledVenueData(
        name="Escape Lab",
        place_id="0xabc",
        rooms=[CrawledRoomData(name="Vault"), CrawledRoomData(name="Asylum")],
    )
    result = ScrapeResult(venues=[venue], summary=CrawlSummary())
    venues_df = result.dataframe
    assert list(venues_df["name"]) == ["Escape Lab"]
    assert venues_df.loc[0, "room_count"] == 2
    assert "rooms" not in venues_df.columns
    rooms_df = result.rooms_dataframe
    assert list(rooms_df["name"]) == ["Vault", "Asylum"]
    assert set(rooms_df["venue_place_id"]) == {"0xabc"}


def test_venue_collections_flatten_for_export() -> None:
    venue = CrawledVenueData(
        name="Game Haus Cafe",
        photo_urls=["https://lh5.example.com/a", "https://lh5.example.com/b"],
        attributes={"Amenities": ["Restroom", "Wi-Fi"], "Accessibility": ["Wheelchair accessible entrance"]},
    )
    row = ScrapeResult(venues=[venue], summary=CrawlSummary()).dataframe.iloc[0]
    assert row["photo_urls"] == "https://lh5.example.com/a\nhttps://lh5.example.com/b"
    assert row["photo_local_paths"] == ""
    assert row["attributes"] == "Amenities: Restroom, Wi-Fi\nAccessibility: Wheelchair accessible entrance"


def test_ledger_claims_once() -> None:
    ledger = DeduplicationLedger()
    assert ledger.claim("0xabc")
    assert not ledger.claim("0xabc")
    assert "0xabc" in ledger and len(ledger) == 1


def test_progress_log_records_lines_and_events(caplog) -> None:
    logger = logging.getLogger("test_progress")
    progress = ProgressLog(logger)
    with caplog.at_level(logging.DEBUG, logger="test_progress"):
        progress.emit("venue_saved", "Extracted: Escape Lab", name="Escape Lab")
        progress.debug("field %s missing", "phone")
    assert progress.lines[0].endswith("] Extracted: Escape Lab")
    assert progress.events[0]["event"] == "venue_saved"
    assert progress.events[0]["name"] == "Escape Lab"
    assert progress.count("venue_saved") == 1
    assert len(progress.lines) == 1, "debug chatter stays out of the operator log"
    assert "field phone missing" in caplog.text


def test_settings_from_env() -> None:
    env = {
        "VENUE_CRAWLER_HEADLESS": "false",
        "VENUE_CRAWLER_SCROLL_ROUNDS": "8",
        "VENUE_CRAWLER_IMAGE_TIMEOUT_S": "2.5",
        "VENUE_CRAWLER_LOCALE": "en-GB",
    }
    settings = CrawlSettings.from_env(env, max_reviews=3)
    assert settings.headless is False
    assert settings.scroll_rounds == 8
    assert settings.image_timeout_s == 2.5
    assert settings.locale == "en-GB"
    assert settings.max_reviews == 3


def test_settings_reject_bad_concurrency() -> None:
    with pytest.raises(ValueError):
        CrawlSettings(room_crawl_concurrency=0)
