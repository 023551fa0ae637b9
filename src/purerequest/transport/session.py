"""aiohttp-backed transport."""

from __future__ import annotations

import logging
import ssl as ssl_module
from collections.abc import AsyncIterator
from types import TracebackType
from typing import Optional, Union

import aiohttp
from yarl import URL

from ..errors import TransportError
from ..headers import Headers
from .protocols import HopRequest

logger = logging.getLogger(__name__)

SSLOption = Union[ssl_module.SSLContext, bool, None]


class AiohttpResponse:
    """TransportResponse wrapping an undecoded aiohttp.ClientResponse."""

    CHUNK_SIZE = 64 * 1024

    def __init__(self, response: aiohttp.ClientResponse) -> None:
        self._response = response
        self.status = response.status
        self.reason = response.reason
        self.headers = Headers(response.headers.items())
        self._released = False

    async def iter_raw(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_chunked(self.CHUNK_SIZE):
                yield chunk
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(f"Connection lost while reading body from {self._response.url}: {e}") from e

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._response.close()


class AiohttpTransport:
    """
    Transport that sends each hop through an aiohttp session.

    Redirects and content decoding are left to the pipeline, and the
    connector holds a single connection that is closed after every
    response, so a pipeline never keeps more than one socket open.

    Example:
        async with AiohttpTransport() as transport:
            response = await transport.send(hop)
            async for chunk in response.iter_raw():
                ...
            await response.release()
    """

    def __init__(self, ssl: SSLOption = None, user_agent: Optional[str] = None) -> None:
        """
        Initialize the transport.

        Args:
            ssl: SSL context, or False to skip certificate verification
                for https URLs. None uses aiohttp's default verification.
            user_agent: User-Agent sent when the request sets none
        """
        self._ssl = ssl
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> AiohttpTransport:
        self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=1, force_close=True)
            headers = {"User-Agent": self._user_agent} if self._user_agent else None
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=headers,
                auto_decompress=False,
                timeout=aiohttp.ClientTimeout(total=None),
            )
        return self._session

    async def send(self, request: HopRequest) -> AiohttpResponse:
        session = self._ensure_session()
        kwargs = {}
        if self._ssl is not None and request.url.secure:
            kwargs["ssl"] = self._ssl

        logger.debug(f"{request.method} {request.url.href}")
        try:
            response = await session.request(
                request.method,
                URL(request.url.href, encoded=True),
                headers=list(request.headers.items()),
                data=request.body,
                allow_redirects=False,
                **kwargs,
            )
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(f"{request.method} {request.url.href} failed: {e}") from e
        return AiohttpResponse(response)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
