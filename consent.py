"""Cookie consent and interstitial handling."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from selectors_def import CONSENT_BUTTON_SELECTORS, CONSENT_MARKERS


logger = logging.getLogger(__name__)


async def dismiss_consent(
    page: Any,
    *,
    selectors: Sequence[str] = CONSENT_BUTTON_SELECTORS,
    settle_ms: int = 2000,
) -> Optional[str]:
    """Click the first visible consent button.

    Visibility is checked without waiting, so a page without an overlay
    costs one round trip per selector.  Safe to call repeatedly.  Returns
    the selector that was clicked or ``None`` when no consent overlay was
    showing.
    """
    for selector in selectors:
        button = page.locator(selector).first
        try:
            if not await button.is_visible():
                continue
            await button.click()
        except PlaywrightError as exc:
            logger.debug("Consent button %r not clickable: %s", selector, exc)
            continue
        logger.info("Dismissed consent overlay via %s", selector)
        await page.wait_for_timeout(settle_ms)
        return selector
    return None


async def looks_blocked_by_consent(page: Any) -> bool:
    """Heuristic: does the page body mention consent?"""
    try:
        body = await page.content()
    except PlaywrightError:
        return False
    return any(marker in body for marker in CONSENT_MARKERS)
