"""Content-Encoding detection and streaming decompression."""

from __future__ import annotations

import logging
import zlib
from collections.abc import AsyncIterable, AsyncIterator
from enum import Enum
from typing import Optional, Protocol

import brotli

from .errors import DecodeError

logger = logging.getLogger(__name__)

# Advertised in Accept-Encoding, in preference order
SUPPORTED_CODINGS = ("gzip", "deflate", "br")

GZIP_TOKENS = frozenset({"gzip", "x-gzip"})
DEFLATE_TOKENS = frozenset({"deflate", "x-deflate"})
BROTLI_TOKENS = frozenset({"br"})

# Statuses that never carry a body
BODYLESS_STATUSES = frozenset({204, 304})


class ContentCoding(str, Enum):
    """Decompression transform applied to a response body."""

    IDENTITY = "identity"
    GZIP = "gzip"
    BROTLI = "br"
    ZLIB = "zlib"
    RAW_DEFLATE = "raw-deflate"


def needs_sniff(token: Optional[str]) -> bool:
    """True when ``token`` is ambiguous until the first body byte is seen."""
    return token in DEFLATE_TOKENS


def select_coding(token: Optional[str], first_chunk: Optional[bytes] = None) -> ContentCoding:
    """
    Map a Content-Encoding value to a transform.

    Tokens are matched case-sensitively. "deflate" is used in the wild for
    both zlib-wrapped and raw DEFLATE streams; a zlib header has 0x8 (the
    DEFLATE method) in the low nibble of its first byte, which is what
    tells the two apart.

    Args:
        token: Content-Encoding header value, or None
        first_chunk: First non-empty body chunk; required for deflate

    Returns:
        ContentCoding variant
    """
    if token in GZIP_TOKENS:
        return ContentCoding.GZIP
    if token in BROTLI_TOKENS:
        return ContentCoding.BROTLI
    if token in DEFLATE_TOKENS:
        if not first_chunk:
            raise ValueError("deflate coding needs the first body chunk to sniff")
        if (first_chunk[0] & 0x0F) == 0x08:
            return ContentCoding.ZLIB
        return ContentCoding.RAW_DEFLATE
    return ContentCoding.IDENTITY


def should_decode(method: str, status: int, token: Optional[str]) -> bool:
    """Whether the body of this response goes through a decompressor at all."""
    return method != "HEAD" and token is not None and status not in BODYLESS_STATUSES


class Decompressor(Protocol):
    coding: ContentCoding

    def decompress(self, data: bytes) -> bytes: ...

    def flush(self) -> bytes: ...


class ZlibDecompressor:
    """gzip, zlib and raw DEFLATE via ``zlib.decompressobj``."""

    _WBITS = {
        ContentCoding.GZIP: 16 + zlib.MAX_WBITS,
        ContentCoding.ZLIB: zlib.MAX_WBITS,
        ContentCoding.RAW_DEFLATE: -zlib.MAX_WBITS,
    }

    def __init__(self, coding: ContentCoding) -> None:
        self.coding = coding
        self._obj = zlib.decompressobj(wbits=self._WBITS[coding])

    def decompress(self, data: bytes) -> bytes:
        try:
            return self._obj.decompress(data)
        except zlib.error as e:
            raise DecodeError(f"Invalid {self.coding.value} data: {e}") from e

    def flush(self) -> bytes:
        try:
            tail = self._obj.flush()
        except zlib.error as e:
            raise DecodeError(f"Invalid {self.coding.value} data: {e}") from e
        if not self._obj.eof:
            raise DecodeError(f"Unexpected end of {self.coding.value} stream")
        return tail


class BrotliDecompressor:
    coding = ContentCoding.BROTLI

    def __init__(self) -> None:
        self._obj = brotli.Decompressor()

    def decompress(self, data: bytes) -> bytes:
        try:
            return self._obj.process(data)
        except brotli.error as e:
            raise DecodeError(f"Invalid br data: {e}") from e

    def flush(self) -> bytes:
        if not self._obj.is_finished():
            raise DecodeError("Unexpected end of br stream")
        return b""


def create_decompressor(coding: ContentCoding) -> Optional[Decompressor]:
    """Return a fresh decompressor for ``coding``, or None for identity."""
    if coding is ContentCoding.IDENTITY:
        return None
    if coding is ContentCoding.BROTLI:
        return BrotliDecompressor()
    return ZlibDecompressor(coding)


async def decode_body(chunks: AsyncIterable[bytes], token: Optional[str]) -> AsyncIterator[bytes]:
    """
    Decompress a body stream according to its Content-Encoding.

    Unknown or absent tokens pass the stream through untouched. For
    "deflate" the first non-empty chunk is read ahead, sniffed, and then fed
    to the chosen decompressor before the rest of the stream. An empty body
    yields nothing for every coding.

    Raises:
        DecodeError: If the compressed data is malformed or truncated
    """
    iterator = chunks.__aiter__()

    first: Optional[bytes] = None
    if needs_sniff(token):
        async for chunk in iterator:
            if chunk:
                first = chunk
                break
        if first is None:
            return
        coding = select_coding(token, first)
    else:
        coding = select_coding(token)

    decompressor = create_decompressor(coding)
    logger.debug(f"Content-Encoding {token!r} -> {coding.value}")

    if decompressor is None:
        async for chunk in iterator:
            yield chunk
        return

    seen_data = False
    if first is not None:
        seen_data = True
        out = decompressor.decompress(first)
        if out:
            yield out
    async for chunk in iterator:
        if not chunk:
            continue
        seen_data = True
        out = decompressor.decompress(chunk)
        if out:
            yield out
    if seen_data:
        tail = decompressor.flush()
        if tail:
            yield tail
