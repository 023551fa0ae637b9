"""Protocol definitions for the transport abstraction."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol

from ..headers import Headers

if TYPE_CHECKING:
    from ..url import ParsedURL


@dataclass(frozen=True)
class HopRequest:
    """
    Everything a transport needs to send one hop.

    Attributes:
        method: Upper-case HTTP method
        url: Target of this hop
        headers: Headers to write, already resolved
        body: None, str, bytes, a binary file or an async iterable of bytes
    """

    method: str
    url: ParsedURL
    headers: Headers
    body: Any = None


class TransportResponse(Protocol):
    """
    A response whose headers have arrived and whose body is still on the wire.

    ``iter_raw()`` yields the body exactly as received (no content decoding)
    and may be consumed once. ``release()`` closes the underlying connection
    and is safe to call more than once.
    """

    status: int
    reason: Optional[str]
    headers: Headers

    def iter_raw(self) -> AsyncIterator[bytes]: ...

    async def release(self) -> None: ...


class Transport(Protocol):
    """
    Protocol for network transports.

    This abstraction allows for:
    - Scripted fakes in tests
    - Different backends (aiohttp, httpx, etc.)
    - Keeping socket I/O out of the redirect and decoding logic

    Implementations must raise TransportError for connection failures and
    must not follow redirects or decode Content-Encoding themselves.
    """

    async def send(self, request: HopRequest) -> TransportResponse:
        """
        Write the request line, headers and body; wait for response headers.

        Args:
            request: The hop to send

        Returns:
            TransportResponse with status and headers; body not yet read

        Raises:
            TransportError: On connection or protocol failure
        """
        ...

    async def close(self) -> None: ...
