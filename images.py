"""Local image storage.

The crawlers only hand over a remote URL and a filename hint; this store
downloads the bytes and returns a site-relative path such as
``/images/venues/escape-lab-638412345678.jpg``.  Failures raise and it is
up to the caller to decide whether a missing image matters.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_random

from utils import slugify


logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def extension_for(content_type: Optional[str]) -> str:
    media_type = (content_type or "").split(";")[0].strip().lower()
    return _EXTENSIONS.get(media_type, ".jpg")


class LocalImageStore:
    """Saves remote images below ``<root>/images/<folder>/``."""

    def __init__(
        self,
        root: str,
        *,
        timeout_s: float = 30.0,
        max_attempts: int = 3,
        backoff_s: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.root = Path(root)
        self._timeout = httpx.Timeout(timeout_s)
        self._max_attempts = max_attempts
        self._backoff_s = backoff_s
        self._transport = transport

    async def save_from_url(self, url: str, folder: str, filename_hint: str) -> str:
        async with httpx.AsyncClient(
            timeout=self._timeout, follow_redirects=True, transport=self._transport
        ) as client:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=self._backoff_s, max=4) + wait_random(0, self._backoff_s),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(url)
            response.raise_for_status()

        ticks = time.time_ns() // 100
        file_name = f"{slugify(filename_hint) or 'image'}-{ticks}{extension_for(response.headers.get('content-type'))}"
        relative = Path("images") / folder / file_name
        full_path = self.root / relative
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(response.content)
        logger.info("Downloaded image from %s to %s", url, relative.as_posix())
        return "/" + relative.as_posix()

    def delete_image(self, relative_path: str) -> bool:
        if not relative_path:
            return False
        full_path = self.root / relative_path.lstrip("/")
        if not full_path.is_file():
            return False
        full_path.unlink()
        logger.info("Deleted image at %s", relative_path)
        return True
