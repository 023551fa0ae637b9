"""Public entry points."""

from __future__ import annotations

import dataclasses
from typing import Any, Optional

from .errors import ResponseStatusError
from .models.config import RequestOptions
from .redirect import RedirectEngine
from .resolver import ResolvedRequest, resolve_request
from .response import Response
from .transport import AiohttpTransport, Transport

# Ceiling for fetch_json when no smaller size is configured
MAX_JSON_SIZE = 50 * 1000 * 1000

# Default timeouts in seconds; an explicit timeout (including 0) wins
JSON_TIMEOUT = 5.0
STREAM_TIMEOUT = 15.0


class Request:
    """
    A resolved request that can be sent.

    Options are validated in the constructor, so a bad method/body pair or
    an unsupported URL fails before any connection is made.

    Example:
        req = Request("https://example.com/upload", method="POST", body="hi")
        response = await req.send()
        print(response.status, await response.text())
    """

    def __init__(
        self,
        url: Optional[str] = None,
        options: RequestOptions | dict | None = None,
        *,
        transport: Optional[Transport] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the request.

        Args:
            url: Target URL (may instead be given in ``options``)
            options: RequestOptions or mapping
            transport: Transport to send through. When omitted, a private
                AiohttpTransport is created per send and closed with the
                response.
            **kwargs: Individual RequestOptions fields
        """
        if url is not None:
            kwargs["url"] = url
        self.options: ResolvedRequest = resolve_request(options, **kwargs)
        self._transport = transport

    @classmethod
    def from_resolved(cls, resolved: ResolvedRequest, transport: Optional[Transport] = None) -> Request:
        req = cls.__new__(cls)
        req.options = resolved
        req._transport = transport
        return req

    async def send(self) -> Response:
        """
        Send the request and follow redirects.

        Returns:
            Response for the final hop. Close it (or read it fully) to
            release the connection.
        """
        owned = self._transport is None
        transport: Transport = AiohttpTransport() if owned else self._transport
        engine = RedirectEngine(self.options, transport, on_close=transport.close if owned else None)
        try:
            return await engine.run()
        except BaseException:
            if owned:
                await transport.close()
            raise


async def request(url: str, *, transport: Optional[Transport] = None, **options: Any) -> Response:
    """Send a request to ``url``; see RequestOptions for ``options``."""
    return await Request(url, transport=transport, **options).send()


async def fetch_stream(url: str, *, transport: Optional[Transport] = None, **options: Any) -> Response:
    """
    Send a request and return the response for streaming.

    Applies a STREAM_TIMEOUT second timeout unless ``timeout`` is given.

    Raises:
        ResponseStatusError: If the final status is not 2xx
    """
    options.setdefault("timeout", STREAM_TIMEOUT)
    response = await request(url, transport=transport, **options)
    if not response.ok:
        await response.close()
        raise ResponseStatusError(response.url, response.status, response.reason)
    return response


async def fetch_json(url: str, *, transport: Optional[Transport] = None, **options: Any) -> Any:
    """
    Send a request and parse the JSON body.

    The body is capped at MAX_JSON_SIZE bytes unless a smaller ``size`` is
    given. A JSON_TIMEOUT second timeout applies unless ``timeout`` is
    given.

    Raises:
        ResponseStatusError: If the final status is not 2xx
        ExceededSizeError: If the body is larger than the cap
        DecodeError: If the body is not valid JSON
    """
    options.setdefault("timeout", JSON_TIMEOUT)
    resolved = resolve_request(url=url, **options)
    if not 0 < resolved.size < MAX_JSON_SIZE:
        resolved = dataclasses.replace(resolved, size=MAX_JSON_SIZE)

    async with await Request.from_resolved(resolved, transport).send() as response:
        if not response.ok:
            raise ResponseStatusError(response.url, response.status, response.reason)
        return await response.json()
