"""Byte ceiling for streamed response bodies."""

import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable
from typing import Callable, Optional

from .errors import ExceededSizeError

logger = logging.getLogger(__name__)


async def guard_size(
    chunks: AsyncIterable[bytes],
    limit: int,
    url: str,
    on_exceeded: Optional[Callable[[], Awaitable[None]]] = None,
) -> AsyncIterator[bytes]:
    """
    Pass chunks through until more than ``limit`` bytes have been seen.

    The chunk that crosses the ceiling is not delivered. ``on_exceeded`` runs
    before the error is raised so the caller can tear down the connection.
    A ``limit`` of 0 or less disables the check.

    Raises:
        ExceededSizeError: When the running total passes ``limit``
    """
    total = 0
    async for chunk in chunks:
        total += len(chunk)
        if limit > 0 and total > limit:
            logger.warning(f"Response from {url} exceeded {limit} bytes, aborting")
            if on_exceeded is not None:
                await on_exceeded()
            raise ExceededSizeError(url, limit)
        yield chunk
