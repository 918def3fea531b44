"""Selector resolution.

A logical field (rating, address, ...) is described by an ordered list of
:class:`FieldRule` objects.  :func:`resolve_field` walks the list and
returns the first transformed value that is not empty.  A rule whose
element never becomes visible, whose attribute is missing or whose
transform rejects the raw text is skipped.  Running out of rules yields
``None``; nothing here raises to the caller because almost every field on
a listing is optional.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from utils import clean_text


logger = logging.getLogger(__name__)

DEFAULT_FIELD_TIMEOUT_MS = 1000


@dataclass(frozen=True)
class FieldRule:
    """One locator for a field plus the transform applied to what it finds.

    Attributes
    ----------
    selector : str
        Playwright selector; only the first match is considered.
    transform : callable
        Turns the raw string into a value.  Returning ``None`` or ``""``
        means "not valid here, try the next rule".
    attribute : str, optional
        Read this attribute instead of the element's text content.
    """

    selector: str
    transform: Callable[[str], Any] = field(default=clean_text)
    attribute: Optional[str] = None


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


async def read_rule(page: Any, rule: FieldRule, timeout_ms: int) -> Any:
    """Apply a single rule; raises Playwright errors when the element is absent."""
    locator = page.locator(rule.selector).first
    await locator.wait_for(state="visible", timeout=timeout_ms)
    if rule.attribute:
        raw = await locator.get_attribute(rule.attribute)
    else:
        raw = await locator.text_content()
    return rule.transform(raw or "")


async def resolve_field(
    page: Any,
    rules: Sequence[FieldRule],
    *,
    name: str = "field",
    timeout_ms: int = DEFAULT_FIELD_TIMEOUT_MS,
) -> Any:
    """Return the first non-empty value produced by ``rules`` or ``None``.

    ``page`` may be a Playwright ``Page`` or a ``Locator`` scoping the
    search to part of the document (a review card, for instance).
    """
    for rule in rules:
        try:
            value = await read_rule(page, rule, timeout_ms)
        except (PlaywrightError, ValueError) as exc:
            logger.debug("%s: selector %r gave nothing (%s)", name, rule.selector, exc)
            continue
        if not _is_empty(value):
            logger.debug("%s: resolved via %r", name, rule.selector)
            return value
        logger.debug("%s: selector %r matched but value rejected", name, rule.selector)
    return None
