"""Tests for consent overlay handling."""

import asyncio

from conftest import FakeElement, FakePage
from consent import dismiss_consent, looks_blocked_by_consent


def test_clicks_first_visible_button() -> None:
    hidden = FakeElement("Accept all", visible=False)
    agree = FakeElement("I agree")
    page = FakePage({"button:has-text('Accept all')": [hidden], "button:has-text('I agree')": [agree]})
    clicked = asyncio.run(dismiss_consent(page, settle_ms=0))
    assert clicked == "button:has-text('I agree')"
    assert agree.clicks == 1
    assert hidden.clicks == 0


def test_no_overlay_is_a_no_op() -> None:
    page = FakePage({})
    assert asyncio.run(dismiss_consent(page, settle_ms=0)) is None


def test_safe_to_call_repeatedly() -> None:
    button = FakeElement("Accept all")
    page = FakePage({"#L2AGLb": [button]})
    for _ in range(2):
        asyncio.run(dismiss_consent(page, settle_ms=0))
    assert button.clicks == 2


def test_blocked_heuristic() -> None:
    assert asyncio.run(looks_blocked_by_consent(FakePage(html="<form action='/consent'>")))
    assert not asyncio.run(looks_blocked_by_consent(FakePage(html="<div role='feed'></div>")))
