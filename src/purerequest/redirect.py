"""Redirect-following send loop.

The engine is an explicit state machine rather than a recursive send:

    SENDING -> AWAITING_RESPONSE -> REDIRECTING -> SENDING ...
                                 -> DECODING -> DONE
    any state -> FAILED

Hops are strictly sequential. The previous hop's response is released
before the next hop is sent, so at most one connection is live.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .decoding import decode_body, should_decode
from .errors import RedirectError, RedirectLimitError, RedirectMissingLocationError, RequestTimeoutError
from .headers import Headers
from .models.events import RedirectHop, ResponseMeta
from .resolver import ResolvedRequest, is_replayable
from .response import Response
from .size_guard import guard_size
from .transport.protocols import HopRequest, Transport, TransportResponse

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

# Methods rewritten to GET on 301/302, as browsers do
_REWRITE_ON_MOVED = frozenset({"POST"})


class EngineState(str, Enum):
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    REDIRECTING = "redirecting"
    DECODING = "decoding"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RedirectState:
    """Hop counter for one logical request. ``max_hops`` never changes."""

    max_hops: int
    count: int = 0
    hops: list[RedirectHop] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.count >= self.max_hops

    def record(self, hop: RedirectHop) -> None:
        self.hops.append(hop)
        self.count += 1


def is_redirect(status: int) -> bool:
    return status in REDIRECT_STATUSES


def rewrite_for_redirect(status: int, method: str, body: Any, headers: Headers) -> tuple[str, Any, Headers]:
    """
    Method, body and headers for the hop after a ``status`` redirect.

    303 always becomes a bodyless GET; 301/302 do so only for POST. 307
    and 308 keep everything. The returned headers are always a new copy.
    """
    headers = headers.copy()
    if status == 303 or (status in (301, 302) and method in _REWRITE_ON_MOVED):
        headers.delete("content-length")
        return "GET", None, headers
    return method, body, headers


async def _with_idle_timeout(chunks: AsyncIterable[bytes], timeout: float, url: str) -> AsyncIterator[bytes]:
    iterator = chunks.__aiter__()
    while True:
        try:
            chunk = await asyncio.wait_for(iterator.__anext__(), timeout)
        except StopAsyncIteration:
            return
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(url, timeout) from e
        yield chunk


class RedirectEngine:
    """
    Sends a resolved request, following redirects up to its hop limit.

    Single use: ``run()`` may be called once.

    Example:
        engine = RedirectEngine(resolve_request(url="http://example.com/a"), transport)
        response = await engine.run()
        print(engine.state.count, response.status)
    """

    def __init__(
        self,
        request: ResolvedRequest,
        transport: Transport,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            request: Resolved request to send
            transport: Transport used for every hop
            on_close: Awaited after the final response is released
        """
        self._request = request
        self._transport = transport
        self._on_close = on_close
        self.state = RedirectState(max_hops=request.max_redirects)
        self.phase = EngineState.SENDING
        self._started = False

    async def run(self) -> Response:
        """
        Drive the request to a terminal response.

        Returns:
            Response wrapping the decoded, size-limited body of the last hop

        Raises:
            TransportError: On connection failure
            RequestTimeoutError: If a hop's response does not arrive in time
            RedirectLimitError: If the hop limit is reached
            RedirectMissingLocationError: If a redirect has no Location
            RedirectError: If a streaming body would have to be resent
        """
        if self._started:
            raise RuntimeError("RedirectEngine.run() may only be called once")
        self._started = True

        request = self._request
        hop = HopRequest(
            method=request.method,
            url=request.url,
            headers=request.headers.copy(),
            body=request.body,
        )
        response: Optional[TransportResponse] = None
        try:
            while True:
                self.phase = EngineState.SENDING
                response = await self._send(hop)
                if not (request.follow_redirect and is_redirect(response.status)):
                    break
                self.phase = EngineState.REDIRECTING
                current, response = response, None
                hop = await self._next_hop(hop, current)

            self.phase = EngineState.DECODING
            result = self._finalize(hop, response)
            self.phase = EngineState.DONE
            return result
        except BaseException:
            self.phase = EngineState.FAILED
            if response is not None:
                await response.release()
            raise

    async def _send(self, hop: HopRequest) -> TransportResponse:
        self.phase = EngineState.AWAITING_RESPONSE
        timeout = self._request.timeout
        logger.debug(f"Sending {hop.method} {hop.url.href} (hop {self.state.count})")
        if timeout <= 0:
            return await self._transport.send(hop)
        try:
            return await asyncio.wait_for(self._transport.send(hop), timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(hop.url.href, timeout) from e

    async def _next_hop(self, hop: HopRequest, response: TransportResponse) -> HopRequest:
        status = response.status
        try:
            if self.state.exhausted:
                raise RedirectLimitError(self._request.request_url, self.state.max_hops)
            location = response.headers.get("location")
            if not location:
                raise RedirectMissingLocationError(hop.url.href, status)

            method, body, headers = rewrite_for_redirect(status, hop.method, hop.body, hop.headers)
            if body is not None and not is_replayable(body):
                raise RedirectError(f"Cannot resend a streaming body after {status} redirect from {hop.url.href}")
            target = hop.url.join(location)
        finally:
            await response.release()

        self.state.record(RedirectHop(url=hop.url.href, status=status, location=target.href))
        logger.info(f"Redirect {status}: {hop.url.href} -> {target.href} ({method})")
        return HopRequest(method=method, url=target, headers=headers, body=body)

    def _finalize(self, hop: HopRequest, response: TransportResponse) -> Response:
        meta = ResponseMeta(
            status_code=response.status,
            url=hop.url.href,
            headers=response.headers,
            reason=response.reason,
            redirects=list(self.state.hops),
        )

        body: AsyncIterator[bytes] = response.iter_raw()
        if self._request.timeout > 0:
            body = _with_idle_timeout(body, self._request.timeout, hop.url.href)
        token = response.headers.get("content-encoding")
        if should_decode(hop.method, response.status, token):
            body = decode_body(body, token)
        body = guard_size(body, self._request.size, hop.url.href, on_exceeded=response.release)

        async def release() -> None:
            await response.release()
            if self._on_close is not None:
                await self._on_close()

        return Response(meta, body, release)
