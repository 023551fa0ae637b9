"""Response façade: decode views over a single-pass body stream."""

from __future__ import annotations

import asyncio
import base64
import codecs
import hashlib
import hmac
import inspect
import json
import logging
import os
import time
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Optional, Union

from .errors import DecodeError, DigestMismatchError
from .headers import Headers
from .models.config import ValidateOptions, optional_model
from .models.events import ProgressCallback, ProgressInfo, RedirectHop, ResponseMeta

logger = logging.getLogger(__name__)

Destination = Union[str, os.PathLike, Any]


@dataclass
class Blob:
    """In-memory body with its media type."""

    content: bytes
    type: str = ""
    is_closed: bool = False

    @property
    def size(self) -> int:
        return len(self.content)

    def slice(self, start: Optional[int] = None, end: Optional[int] = None, type: Optional[str] = None) -> Blob:
        if self.is_closed:
            raise RuntimeError("Blob is closed")
        return Blob(content=self.content[start:end], type=type or "")

    def close(self) -> None:
        self.is_closed = True

    def __bytes__(self) -> bytes:
        return self.content

    def __str__(self) -> str:
        return self.content.decode("utf-8", errors="replace")


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    for part in content_type.split(";"):
        part = part.strip()
        if part.lower().startswith("charset="):
            return part.split("=", 1)[1].strip().strip("\"'") or None
    return None


def _content_length(headers: Headers) -> Optional[int]:
    value = headers.get("content-length")
    if value is None or not value.strip().isdigit():
        return None
    return int(value)


def _encode_digest(digest: bytes, encoding: str) -> str:
    if encoding == "hex":
        return digest.hex()
    return base64.b64encode(digest).decode("ascii")


async def _iter_buffer(data: bytes) -> AsyncIterator[bytes]:
    if data:
        yield data


class Response:
    """
    Final response of a request.

    The body is read from the network at most once. The first of
    ``text()``, ``json()``, ``buffer()``, ``array_buffer()`` or ``blob()``
    drains it into memory; later calls are served from that buffer.
    ``stream`` and ``download()`` read without buffering.

    Example:
        async with await request("https://example.com/data.json") as response:
            if response.ok:
                data = await response.json()
                raw = await response.text()  # same bytes, no second read
    """

    def __init__(
        self,
        meta: ResponseMeta,
        body: AsyncIterator[bytes],
        release: Callable[[], Awaitable[None]],
    ) -> None:
        self.meta = meta
        self._body = body
        self._release = release
        self._buffer: Optional[bytes] = None
        self._body_taken = False
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def ok(self) -> bool:
        return 200 <= self.meta.status_code < 300

    @property
    def status(self) -> int:
        return self.meta.status_code

    @property
    def reason(self) -> Optional[str]:
        return self.meta.reason

    @property
    def url(self) -> str:
        return self.meta.url

    @property
    def headers(self) -> Headers:
        return self.meta.headers

    @property
    def redirects(self) -> list[RedirectHop]:
        return list(self.meta.redirects)

    @property
    def redirect_count(self) -> int:
        return self.meta.redirect_count

    @property
    def stream(self) -> AsyncIterator[bytes]:
        """
        The decoded, size-limited body as an async iterator.

        Single pass. Once the body has been buffered by a decode call this
        yields the buffer instead.
        """
        if self._buffer is not None:
            return _iter_buffer(self._buffer)
        return self._take_body()

    def _take_body(self) -> AsyncIterator[bytes]:
        if self._body_taken:
            raise RuntimeError("Response body already consumed")
        self._body_taken = True
        return self._consume()

    async def _consume(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._body:
                yield chunk
        finally:
            await self.close()

    async def _read(self) -> bytes:
        async with self._lock:
            if self._buffer is None:
                chunks = [chunk async for chunk in self._take_body()]
                self._buffer = b"".join(chunks)
            return self._buffer

    async def buffer(self) -> bytes:
        return await self._read()

    async def array_buffer(self) -> bytearray:
        return bytearray(await self._read())

    async def blob(self) -> Blob:
        content = await self._read()
        return Blob(content=content, type=self.headers.get("content-type") or "")

    async def text(self) -> str:
        """Decode the body using the Content-Type charset, else UTF-8."""
        content = await self._read()
        charset = charset_from_content_type(self.headers.get("content-type"))
        if charset:
            try:
                return content.decode(charset)
            except (UnicodeDecodeError, LookupError):
                logger.debug(f"Failed to decode with declared charset: {charset}")
        return content.decode("utf-8", errors="replace")

    async def json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            DecodeError: If the body is not valid JSON
        """
        content = await self._read()
        charset = charset_from_content_type(self.headers.get("content-type")) or "utf-8"
        try:
            codecs.lookup(charset)
        except LookupError:
            charset = "utf-8"
        try:
            text = content.decode(charset)
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid {charset} in JSON response from {self.url}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON in response from {self.url}: {e}") from e

    async def download(
        self,
        destination: Destination,
        on_progress: Optional[ProgressCallback] = None,
        validate: Union[ValidateOptions, dict, None] = None,
    ) -> None:
        """
        Stream the body into ``destination`` without buffering it.

        Args:
            destination: File path, binary file object, or object with an
                async ``write(bytes)`` method
            on_progress: Called after every chunk with a ProgressInfo
            validate: Expected digest; checked once the body has ended

        Raises:
            ValidationError: On invalid ``validate`` options
            DigestMismatchError: If the digest of the bytes written differs
                from ``validate.expected``
        """
        options = optional_model(ValidateOptions, validate)
        hasher = hashlib.new(options.algorithm) if options else None
        total = _content_length(self.headers)
        chunks = self.stream

        owned = isinstance(destination, (str, os.PathLike))
        sink = await asyncio.to_thread(Path(destination).open, "wb") if owned else destination

        started = time.monotonic()
        transferred = 0
        try:
            async for chunk in chunks:
                if owned:
                    await asyncio.to_thread(sink.write, chunk)
                else:
                    result = sink.write(chunk)
                    if inspect.isawaitable(result):
                        await result
                transferred += len(chunk)
                if hasher is not None:
                    hasher.update(chunk)
                if on_progress is not None:
                    elapsed = time.monotonic() - started
                    on_progress(
                        ProgressInfo(
                            transferred=transferred,
                            delta=len(chunk),
                            total=total,
                            percent=min(transferred / total * 100, 100.0) if total else None,
                            bytes_per_second=transferred / elapsed if elapsed > 0 else 0.0,
                        )
                    )
        finally:
            if owned:
                await asyncio.to_thread(sink.close)

        if options is not None and hasher is not None:
            actual = _encode_digest(hasher.digest(), options.encoding)
            if not hmac.compare_digest(actual, options.expected):
                logger.warning(f"Digest mismatch for {self.url}: expected {options.expected}, got {actual}")
                raise DigestMismatchError(options.algorithm, options.expected, actual)

    async def close(self) -> None:
        """Release the connection. Unread body data is discarded."""
        if self._closed:
            return
        self._closed = True
        if not self._body_taken:
            self._body_taken = True
            aclose = getattr(self._body, "aclose", None)
            if aclose is not None:
                await aclose()
        await self._release()

    async def __aenter__(self) -> Response:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<Response [{self.status}] {self.url}>"
