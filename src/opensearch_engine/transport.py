from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx
from loguru import logger

_TIMEOUT_SECONDS = 30
_MAX_REDIRECTS = 5
_USER_AGENT = "opensearch-engine"
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@runtime_checkable
class Transport(Protocol):
    """Network capability used for suggestions and images.

    Aborting a request is done by cancelling the task awaiting it.
    """

    async def get(self, url: str) -> bytes: ...

    async def post(self, url: str, body: bytes) -> bytes: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    def __init__(
        self,
        *,
        timeout: float = _TIMEOUT_SECONDS,
        user_agent: str = _USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=True,
            max_redirects=_MAX_REDIRECTS,
        )

    async def get(self, url: str) -> bytes:
        logger.debug(f"GET {url}")
        response = await self._client.get(url)
        return self._content(response)

    async def post(self, url: str, body: bytes) -> bytes:
        logger.debug(f"POST {url} ({len(body)} bytes)")
        response = await self._client.post(
            url,
            content=body,
            headers={"Content-Type": _FORM_CONTENT_TYPE},
        )
        return self._content(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @staticmethod
    def _content(response: httpx.Response) -> bytes:
        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code} from {response.request.url}",
                request=response.request,
                response=response,
            )
        return response.content
