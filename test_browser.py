"""Tests for browser provisioning and contexts."""

import asyncio
import dataclasses
import subprocess

import pytest

import browser
from conftest import FakeBrowser, FakePage
from room_extractor import crawl_venue_website


def test_existing_chromium_is_reused(tmp_path, monkeypatch) -> None:
    (tmp_path / "chromium-1105").mkdir()
    monkeypatch.setenv("PLAYWRIGHT_BROWSERS_PATH", str(tmp_path))
    calls = []
    monkeypatch.setattr(browser, "_run", calls.append)

    assert browser.ensure_chromium() is False
    assert calls == []


def test_missing_chromium_is_installed(tmp_path, monkeypatch) -> None:
    target = tmp_path / "ms-playwright"
    monkeypatch.setenv("PLAYWRIGHT_BROWSERS_PATH", str(target))
    calls = []
    monkeypatch.setattr(browser, "_run", calls.append)

    assert browser.ensure_chromium() is True
    assert calls[0][-3:] == ["playwright", "install", "chromium"]
    assert target.is_dir()


def test_install_failure_propagates(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PLAYWRIGHT_BROWSERS_PATH", str(tmp_path / "empty"))

    def fail(cmd):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(browser, "_run", fail)
    with pytest.raises(subprocess.CalledProcessError):
        browser.ensure_chromium()


def test_context_gets_identity_and_action_timeout(fast_settings) -> None:
    fake = FakeBrowser()
    settings = dataclasses.replace(fast_settings, action_timeout_ms=7500, locale="en-GB")

    context = asyncio.run(browser.new_context(fake, settings))

    assert context.default_timeout == 7500
    assert context.options["locale"] == "en-GB"
    assert context.options["viewport"] == {"width": 1920, "height": 1080}


def test_room_crawl_context_is_bounded(fast_settings) -> None:
    fake = FakeBrowser(FakePage(pages={}))

    asyncio.run(crawl_venue_website("https://gone.example.com/", browser=fake, settings=fast_settings))

    assert fake.contexts[0].default_timeout == fast_settings.action_timeout_ms
