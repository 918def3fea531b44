"""In-memory Playwright doubles shared by the test modules.

The doubles cover only the slice of the async API the crawlers use.  A
page is a mapping of selector -> elements; absent or hidden elements
raise the real ``playwright.async_api.TimeoutError`` so that error
handling is exercised exactly as against a live browser.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from settings import CrawlSettings


class FakeElement:
    def __init__(
        self,
        text: str = "",
        attrs: Optional[Dict[str, str]] = None,
        *,
        visible: bool = True,
        data: Any = None,
        children: Optional[Dict[str, List["FakeElement"]]] = None,
        navigates_to: Optional[str] = None,
    ) -> None:
        self.text = text
        self.attrs = attrs or {}
        self.visible = visible
        self.data = data
        self.children = children or {}
        self.navigates_to = navigates_to
        self.clicks = 0


class FakeLocator:
    def __init__(self, elements: List[FakeElement], selector: str, page: "FakePage") -> None:
        self.elements = elements
        self.selector = selector
        self.page = page

    def _element(self, timeout: Optional[float] = None) -> FakeElement:
        if not self.elements or not self.elements[0].visible:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")
        return self.elements[0]

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self.elements[:1], self.selector, self.page)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.elements[index:index + 1], self.selector, self.page)

    def locator(self, selector: str) -> "FakeLocator":
        found = [child for e in self.elements for child in e.children.get(selector, [])]
        return FakeLocator(found, selector, self.page)

    async def all(self) -> List["FakeLocator"]:
        return [FakeLocator([e], self.selector, self.page) for e in self.elements]

    async def count(self) -> int:
        return len(self.elements)

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        self.page.waits.append((self.selector, timeout))
        self._element(timeout)

    async def is_visible(self) -> bool:
        return bool(self.elements) and self.elements[0].visible

    async def text_content(self) -> Optional[str]:
        return self._element().text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self._element().attrs.get(name)

    async def click(self) -> None:
        element = self._element()
        element.clicks += 1
        if element.navigates_to:
            self.page.url = element.navigates_to

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self._element()
        return None


class FakePage:
    """A page whose DOM is a ``{selector: [FakeElement, ...]}`` mapping.

    ``pages`` maps URLs to DOMs for multi-page scenarios; navigating to a
    URL missing from it fails like a DNS error.  Without ``pages`` the
    DOM stays the same whatever URL is visited.
    """

    def __init__(
        self,
        dom: Optional[Dict[str, List[FakeElement]]] = None,
        *,
        url: str = "about:blank",
        html: str = "",
        pages: Optional[Dict[str, Dict[str, List[FakeElement]]]] = None,
    ) -> None:
        self.dom = dom or {}
        self.url = url
        self.html = html
        self.pages = pages
        self.visited: List[str] = []
        self.queried: List[str] = []
        self.evaluated: List[str] = []
        self.waits: List[Tuple[str, Optional[float]]] = []

    def locator(self, selector: str) -> FakeLocator:
        self.queried.append(selector)
        return FakeLocator(self.dom.get(selector, []), selector, self)

    async def goto(self, url: str, timeout: Optional[float] = None, wait_until: Optional[str] = None) -> None:
        self.visited.append(url)
        if self.pages is not None:
            if url not in self.pages:
                raise PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
            self.dom = self.pages[url]
        self.url = url

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None, **kwargs: Any) -> FakeElement:
        self.queried.append(selector)
        for element in self.dom.get(selector, []):
            if element.visible:
                return element
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def eval_on_selector_all(self, selector: str, expression: str) -> List[Any]:
        self.queried.append(selector)
        return [e.data for e in self.dom.get(selector, [])]

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluated.append(expression)
        return None

    async def wait_for_timeout(self, timeout: float) -> None:
        return None

    async def content(self) -> str:
        return self.html


class FakeContext:
    def __init__(self, page: FakePage, options: Dict[str, Any]) -> None:
        self.page = page
        self.options = options
        self.default_timeout: Optional[float] = None
        self.closed = False

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Hands out one :class:`FakeContext` per ``new_context`` call, all sharing ``page``."""

    def __init__(self, page: Optional[FakePage] = None) -> None:
        self.page = page or FakePage()
        self.contexts: List[FakeContext] = []

    async def new_context(self, **kwargs: Any) -> FakeContext:
        context = FakeContext(self.page, kwargs)
        self.contexts.append(context)
        return context


@pytest.fixture
def fast_settings() -> CrawlSettings:
    """Settings with every wait shortened and no browser provisioning."""
    return CrawlSettings(
        auto_install_browser=False,
        navigation_timeout_ms=100,
        action_timeout_ms=50,
        feed_timeout_ms=10,
        field_timeout_ms=10,
        detail_timeout_ms=10,
        settle_ms=0,
        click_settle_ms=0,
        consent_settle_ms=0,
        scroll_rounds=1,
        scroll_pause_ms=0,
        navigation_attempts=1,
    )
