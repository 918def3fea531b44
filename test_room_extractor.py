"""Tests for room extraction from venue websites."""

import asyncio

from conftest import FakeBrowser, FakeElement, FakePage
from room_extractor import (
    crawl_venue_website,
    extract_rooms,
    extract_rooms_from_site,
    find_room_page_url,
    room_from_card,
)
from selectors_def import HEADING_SELECTOR


HOME = "https://www.escapelab.com/"
ROOMS = "https://www.escapelab.com/rooms"


def card(name, text="", description="", theme="", image="") -> FakeElement:
    return FakeElement(
        data={"name": name, "description": description, "theme": theme, "imageUrl": image, "text": text}
    )


def heading(name, description="", image="") -> FakeElement:
    return FakeElement(data={"name": name, "description": description, "imageUrl": image})


def link(text, href) -> FakeElement:
    return FakeElement(data={"text": text, "href": href})


def test_room_link_must_be_internal() -> None:
    links = [
        {"text": "Facebook", "href": "https://facebook.com/escapelab"},
        {"text": "Book", "href": "mailto:book@escapelab.com"},
        {"text": "", "href": "/rooms"},
        {"text": "Our Rooms", "href": "/rooms"},
    ]
    assert find_room_page_url(links, "https://escapelab.com/") == "https://escapelab.com/rooms"


def test_www_prefix_counts_as_same_site() -> None:
    links = [{"text": "Games", "href": "https://escapelab.com/games"}]
    assert find_room_page_url(links, HOME) == "https://escapelab.com/games"
    assert find_room_page_url([{"text": "Home", "href": "/"}], HOME) is None


def test_room_from_card_parses_text() -> None:
    room = room_from_card(
        {
            "name": "The Vault",
            "description": "Crack the bank vault before the guards return.",
            "theme": "",
            "imageUrl": "/img/vault.jpg",
            "text": "The Vault 2-6 players 60 minutes $35.00 Difficulty: Hard",
        },
        ROOMS,
    )
    assert room.name == "The Vault"
    assert room.theme == "Heist"
    assert (room.min_players, room.max_players) == (2, 6)
    assert room.duration_minutes == 60
    assert room.price == 35.0
    assert room.difficulty == 4
    assert room.image_url == "https://www.escapelab.com/img/vault.jpg"


def test_room_from_card_prefers_explicit_theme_and_defaults() -> None:
    room = room_from_card({"name": "Midnight Express", "theme": "Train", "text": "Up to 8 guests"})
    assert room.theme == "Train"
    assert (room.min_players, room.max_players, room.duration_minutes, room.difficulty) == (2, 6, 60, 3)
    assert room.price is None
    assert room_from_card({"name": "Book Now", "text": ""}) is None


def test_cards_short_circuit_headings() -> None:
    page = FakePage(
        {
            ".room-card": [card("The Haunted Asylum", "4-8 players"), card("Diamond Heist", "2-5 players")],
            HEADING_SELECTOR: [heading("Escape the Mansion")],
        }
    )
    rooms = asyncio.run(extract_rooms(page, ROOMS))
    assert [r.name for r in rooms] == ["The Haunted Asylum", "Diamond Heist"]
    assert HEADING_SELECTOR not in page.queried, "heading fallback must not run when cards produced rooms"
    assert "article" not in page.queried


def test_card_selector_without_plausible_rooms_is_skipped() -> None:
    page = FakePage(
        {
            "[class*='room']": [card("About Us"), card("Contact")],
            ".card": [card("Prison Break", "3 to 6 people")],
        }
    )
    rooms = asyncio.run(extract_rooms(page))
    assert [r.name for r in rooms] == ["Prison Break"]
    assert (rooms[0].min_players, rooms[0].max_players) == (3, 6)


def test_heading_fallback_keeps_only_room_like_headings() -> None:
    page = FakePage(
        {
            HEADING_SELECTOR: [
                heading("Escape the Mansion", "Find the hidden key.", "/img/mansion.jpg"),
                heading("About Us"),
                heading("Contact"),
            ]
        }
    )
    rooms = asyncio.run(extract_rooms(page, HOME))
    assert [r.name for r in rooms] == ["Escape the Mansion"]
    room = rooms[0]
    assert (room.difficulty, room.min_players, room.max_players, room.duration_minutes) == (3, 2, 6, 60)
    assert room.description == "Find the hidden key."
    assert room.image_url == "https://www.escapelab.com/img/mansion.jpg"


def test_heading_fallback_skips_section_titles() -> None:
    page = FakePage(
        {
            HEADING_SELECTOR: [
                heading("Our Rooms"),
                heading("The Vault", "Crack the safe before the guards return."),
                heading("Escape Rooms"),
                heading("All Games"),
            ]
        }
    )
    rooms = asyncio.run(extract_rooms(page, HOME))
    assert [r.name for r in rooms] == ["The Vault"]


def test_duplicate_room_names_are_collapsed() -> None:
    page = FakePage({".game-card": [card("The Vault"), card("the vault"), card("Asylum")]})
    rooms = asyncio.run(extract_rooms(page))
    assert [r.name for r in rooms] == ["The Vault", "Asylum"]


def test_rooms_invariants_hold() -> None:
    page = FakePage(
        {".experience-card": [card("Zombie Lab", "10-4 players expert"), card("Space Station", "beginner")]}
    )
    for room in asyncio.run(extract_rooms(page)):
        assert room.min_players <= room.max_players
        assert 1 <= room.difficulty <= 5


def test_site_follows_rooms_link(fast_settings) -> None:
    page = FakePage(
        pages={
            HOME: {"a": [link("Gift Cards", "/gift"), link("Our Rooms", "/rooms")]},
            ROOMS: {".room-card": [card("The Vault", "2-6 players")]},
        }
    )
    rooms = asyncio.run(extract_rooms_from_site(page, HOME, fast_settings))
    assert page.visited == [HOME, ROOMS]
    assert [r.name for r in rooms] == ["The Vault"]


def test_site_without_rooms_link_uses_homepage(fast_settings) -> None:
    page = FakePage(
        pages={
            HOME: {
                "a": [link("Contact", "/contact")],
                HEADING_SELECTOR: [heading("Escape the Mansion"), heading("About Us"), heading("Contact")],
            }
        }
    )
    rooms = asyncio.run(extract_rooms_from_site(page, HOME, fast_settings))
    assert page.visited == [HOME]
    assert [r.name for r in rooms] == ["Escape the Mansion"]


def test_unreachable_site_returns_empty_list(fast_settings) -> None:
    browser = FakeBrowser(FakePage(pages={}))
    rooms = asyncio.run(
        crawl_venue_website("https://gone.example.com/", browser=browser, settings=fast_settings)
    )
    assert rooms == []
    assert browser.contexts[0].closed, "the context is released on failure"


def test_missing_url_returns_empty_list(fast_settings) -> None:
    assert asyncio.run(crawl_venue_website(None, settings=fast_settings)) == []
