from __future__ import annotations

import asyncio
import base64
import io
from typing import Protocol, runtime_checkable

import httpx
from loguru import logger
from PIL import Image, UnidentifiedImageError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from opensearch_engine.events import Signal
from opensearch_engine.transport import Transport

_DEFAULT_RETRY_ATTEMPTS = 3
_DEFAULT_RETRY_WAIT_SECONDS = 1.0
_DATA_URI_PREFIX = "data:image/png;base64,"


@runtime_checkable
class ImageDecoder(Protocol):
    def decode(self, data: bytes) -> Image.Image | None: ...


class PillowImageDecoder:
    def decode(self, data: bytes) -> Image.Image | None:
        if not data:
            return None
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as ex:
            logger.debug(f"Could not decode image ({len(data)} bytes): {ex}")
            return None
        if image.width == 0 or image.height == 0:
            return None
        return image


def image_data_uri(image: Image.Image) -> str | None:
    """Encode ``image`` as a base64 PNG data URI, or ``None`` if it can't be saved."""
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as ex:
        logger.warning(f"Could not encode image as PNG: {ex}")
        return None
    return _DATA_URI_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.debug(f"Image fetch failed ({reason}). Retrying in {wait:.1f}s (attempt {attempt})...")


def default_retry_kwargs(attempts: int, wait_seconds: float) -> dict:
    return {
        "retry": retry_if_exception_type(httpx.TransportError),
        "wait": wait_exponential(multiplier=wait_seconds, max=wait_seconds * 8),
        "stop": stop_after_attempt(max(1, attempts)),
        "before_sleep": _on_retry,
        "reraise": True,
    }


class ImageLoader:
    """Lazily fetches and caches the image behind an engine's image URL."""

    def __init__(
        self,
        transport: Transport | None,
        image_changed: Signal,
        *,
        decoder: ImageDecoder | None = None,
        retry_attempts: int = _DEFAULT_RETRY_ATTEMPTS,
        retry_wait_seconds: float = _DEFAULT_RETRY_WAIT_SECONDS,
    ) -> None:
        self._transport = transport
        self._image_changed = image_changed
        self._decoder = decoder or PillowImageDecoder()
        self._retry_kwargs = default_retry_kwargs(retry_attempts, retry_wait_seconds)
        self._image: Image.Image | None = None
        self._pending: asyncio.Task | None = None
        self._pending_url = ""

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @transport.setter
    def transport(self, transport: Transport | None) -> None:
        self.cancel()
        self._transport = transport

    @property
    def cached(self) -> Image.Image | None:
        return self._image

    @property
    def in_flight(self) -> asyncio.Task | None:
        return self._pending

    def image(self, url: str) -> Image.Image | None:
        """Return the cached image, starting a background fetch of ``url`` if there is none."""
        if self._image is not None:
            return self._image
        if not url or self._transport is None:
            return None
        if self._pending is not None and self._pending_url == url:
            return None

        self.cancel()
        self._pending_url = url
        pending = asyncio.create_task(self._fetch(self._transport, url))
        pending.add_done_callback(self._image_obtained)
        self._pending = pending
        return None

    def set_image(self, image: Image.Image | None) -> None:
        self.cancel()
        self._image = image
        self._image_changed.emit()

    def invalidate(self) -> None:
        self.cancel()
        self._image = None

    def cancel(self) -> None:
        pending, self._pending = self._pending, None
        self._pending_url = ""
        if pending is not None:
            pending.remove_done_callback(self._image_obtained)
            pending.cancel()

    async def _fetch(self, transport: Transport, url: str) -> bytes:
        async for attempt in AsyncRetrying(**self._retry_kwargs):
            with attempt:
                return await transport.get(url)
        return b""

    def _image_obtained(self, pending: asyncio.Task) -> None:
        superseded = pending is not self._pending
        if not superseded:
            self._pending = None
            self._pending_url = ""

        if pending.cancelled():
            return

        error = pending.exception()
        if superseded:
            return
        if error is not None:
            logger.debug(f"Image request failed: {type(error).__name__}: {error}")
            return

        image = self._decoder.decode(pending.result())
        if image is None:
            return

        self._image = image
        self._image_changed.emit()
