"""Tests for the local image store."""

import asyncio
import warnings

import httpx
import pytest

from images import LocalImageStore, extension_for


def test_extension_for_content_type() -> None:
    assert extension_for("image/png") == ".png"
    assert extension_for("image/webp; charset=binary") == ".webp"
    assert extension_for("image/jpeg") == ".jpg"
    assert extension_for(None) == ".jpg"


def test_save_and_delete(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

    store = LocalImageStore(str(tmp_path), transport=httpx.MockTransport(handler))
    relative = asyncio.run(store.save_from_url("https://lh5.example.com/p", "venues", "Escape Lab: LA"))

    assert relative.startswith("/images/venues/escape-lab-la-")
    assert relative.endswith(".png")
    saved = tmp_path / relative.lstrip("/")
    assert saved.read_bytes() == b"\x89PNG"
    assert store.delete_image(relative)
    assert not saved.exists()
    assert not store.delete_image(relative)


def test_http_errors_raise(tmp_path) -> None:
    store = LocalImageStore(
        str(tmp_path), transport=httpx.MockTransport(lambda request: httpx.Response(404))
    )
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(store.save_from_url("https://lh5.example.com/missing", "venues", "x"))
    assert not (tmp_path / "images").exists()


def test_transport_errors_are_retried(tmp_path) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        if len(calls) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, content=b"GIF89a", headers={"content-type": "image/gif"})

    store = LocalImageStore(str(tmp_path), backoff_s=0, transport=httpx.MockTransport(handler))
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        relative = asyncio.run(store.save_from_url("https://lh5.example.com/p", "photos", "Escape Lab"))

    assert len(calls) == 2
    assert relative.startswith("/images/photos/escape-lab-") and relative.endswith(".gif")


def test_retries_give_up_after_max_attempts(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    store = LocalImageStore(
        str(tmp_path), max_attempts=2, backoff_s=0, transport=httpx.MockTransport(handler)
    )
    with pytest.raises(httpx.ConnectError):
        asyncio.run(store.save_from_url("https://lh5.example.com/p", "venues", "x"))
