"""Browser provisioning and navigation helpers.

On hosted environments the Playwright post-install step may never run,
so Chromium may be missing.  :func:`ensure_chromium` performs a one-off
installation into a repo-local directory on first call and reuses it
afterwards.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, List, Optional

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Playwright
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from settings import BASE_DIR, CrawlSettings


PLAYWRIGHT_DIR = BASE_DIR / "ms-playwright"
# Persist browsers under the repository so they survive app restarts
os.environ.setdefault("PLAYWRIGHT_BROWSERS_PATH", str(PLAYWRIGHT_DIR))

LAUNCH_ARGS = ["--disable-blink-features=AutomationControlled", "--no-sandbox"]


def _run(cmd: List[str]) -> None:
    """Run a subprocess, raising on non-zero exit for clear failures."""
    subprocess.run(cmd, check=True)


def chromium_present(browsers_path: Path) -> bool:
    return browsers_path.is_dir() and any(browsers_path.glob("chromium-*"))


def ensure_chromium(logger: Optional[logging.Logger] = None) -> bool:
    """Install Chromium into ``PLAYWRIGHT_BROWSERS_PATH`` unless already there.

    Returns True when an installation was performed.  Playwright is run
    through the current interpreter so a virtualenv without the
    ``playwright`` script on PATH still works.  Install failures are
    logged and re-raised.
    """
    log = logger or logging.getLogger(__name__)
    browsers_path = Path(os.environ["PLAYWRIGHT_BROWSERS_PATH"])
    if chromium_present(browsers_path):
        log.debug("[setup] Chromium already present in %s", browsers_path)
        return False

    browsers_path.mkdir(parents=True, exist_ok=True)
    log.info("[setup] Installing Chromium into %s ...", browsers_path)
    try:
        _run([sys.executable, "-m", "playwright", "install", "chromium"])
    except (OSError, subprocess.CalledProcessError) as exc:
        log.error("[setup] Chromium install failed: %s", exc)
        raise
    log.info("[setup] Chromium install completed.")
    return True


async def launch_browser(playwright: Playwright, settings: CrawlSettings) -> Browser:
    return await playwright.chromium.launch(headless=settings.headless, args=LAUNCH_ARGS)


async def new_context(browser: Browser, settings: CrawlSettings) -> BrowserContext:
    """Open a context with a desktop identity; one per concurrent task.

    Actions without an explicit timeout are bounded by
    ``settings.action_timeout_ms`` instead of Playwright's 30 s default.
    """
    context = await browser.new_context(
        user_agent=settings.user_agent,
        locale=settings.locale,
        timezone_id=settings.timezone_id,
        viewport={"width": settings.viewport_width, "height": settings.viewport_height},
    )
    context.set_default_timeout(settings.action_timeout_ms)
    return context


async def goto(
    page: Any,
    url: str,
    settings: CrawlSettings,
    *,
    wait_until: str = "domcontentloaded",
) -> None:
    """Navigate with a bounded number of attempts; the last error propagates."""
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(PlaywrightError),
        stop=stop_after_attempt(settings.navigation_attempts),
        wait=wait_fixed(1),
        reraise=True,
    ):
        with attempt:
            await page.goto(url, timeout=settings.navigation_timeout_ms, wait_until=wait_until)
