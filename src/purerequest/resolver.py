"""Turn user options into a fully resolved request."""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from .decoding import SUPPORTED_CODINGS
from .errors import ValidationError
from .headers import Headers
from .models.config import RequestOptions, build_model
from .url import ParsedURL

logger = logging.getLogger(__name__)

METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})
BODYLESS_METHODS = frozenset({"GET", "HEAD"})

# Set by the pipeline, never by the caller
SYSTEM_HEADERS = ("content-length",)

TEXT_CONTENT_TYPE = "text/plain;charset=UTF-8"

# RFC 7230 section 3.2.6 token characters
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Control characters other than HTAB, DEL, and anything outside latin-1
_INVALID_VALUE_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]|[^\x00-\xff]")


@dataclass(frozen=True)
class ResolvedRequest:
    """
    A validated request ready for the redirect engine.

    Attributes:
        method: Upper-case method
        url: Parsed target, query parameters already merged
        headers: Outgoing headers, system defaults applied
        body: Request body or None
        follow_redirect: Whether 3xx responses are followed
        max_redirects: Hop limit
        timeout: Seconds to wait for a response (0 = no limit)
        size: Maximum response body bytes (0 = no limit)
    """

    method: str
    url: ParsedURL
    headers: Headers
    body: Any
    follow_redirect: bool
    max_redirects: int
    timeout: float
    size: int

    @property
    def request_url(self) -> str:
        return self.url.href


def is_valid_header_name(name: str) -> bool:
    return isinstance(name, str) and bool(_TOKEN_RE.match(name))


def has_invalid_header_chars(value: str) -> bool:
    return bool(_INVALID_VALUE_RE.search(value))


def extract_content_type(body: Any) -> Optional[str]:
    """Infer a Content-Type from the body's type. Only text bodies get one."""
    if isinstance(body, str):
        return TEXT_CONTENT_TYPE
    return None


def _is_stream(body: Any) -> bool:
    return hasattr(body, "__aiter__") or isinstance(body, io.IOBase)


def is_replayable(body: Any) -> bool:
    """True when the body can be written again on a later hop."""
    return body is None or not _is_stream(body)


def _check_body(body: Any) -> None:
    if body is None or isinstance(body, (str, bytes, bytearray, memoryview)) or _is_stream(body):
        return
    raise ValidationError(f"Unsupported body type: {type(body).__name__}")


def _build_headers(user_headers: Headers, body: Any) -> Headers:
    headers = user_headers.copy()
    for name, value in headers.items():
        if not is_valid_header_name(name):
            raise ValidationError(f"Invalid header name: {name!r}")
        if has_invalid_header_chars(value):
            raise ValidationError(f"Invalid character in header value for {name!r}")

    for name in SYSTEM_HEADERS:
        headers.delete(name)
    headers.set("accept-encoding", ", ".join(SUPPORTED_CODINGS))
    if not headers.has("accept"):
        headers.set("accept", "*/*")
    if not headers.has("connection"):
        headers.set("connection", "close")
    if body is not None and not headers.has("content-type"):
        content_type = extract_content_type(body)
        if content_type:
            headers.append("content-type", content_type)
    return headers


def resolve_request(options: Any = None, **overrides: Any) -> ResolvedRequest:
    """
    Merge options over the defaults and validate them.

    Accepts a RequestOptions instance, a dict, or keyword arguments; keyword
    arguments win over ``options``. No network I/O happens here.

    Args:
        options: RequestOptions or mapping of option values
        **overrides: Individual option values

    Returns:
        ResolvedRequest

    Raises:
        ValidationError: On unknown options, a body with GET/HEAD, a
            relative or non-http(s) URL, or malformed headers
    """
    if isinstance(options, RequestOptions):
        data = options.model_dump()
        # model_dump would copy stream bodies
        data["body"] = options.body
    else:
        data = dict(options or {})
    data.update(overrides)
    opts = build_model(RequestOptions, data)

    method = opts.method.upper()
    if method not in METHODS:
        raise ValidationError(f"Unsupported method: {opts.method}")

    body = opts.body
    if body is not None and method in BODYLESS_METHODS:
        raise ValidationError(f"Request with {method} method cannot have body")
    _check_body(body)

    url = ParsedURL.parse(opts.url).with_query(opts.query)
    headers = _build_headers(Headers(opts.headers), body)
    logger.debug(f"Resolved {method} {url.href}")

    return ResolvedRequest(
        method=method,
        url=url,
        headers=headers,
        body=body,
        follow_redirect=opts.follow_redirect,
        max_redirects=opts.max_redirects,
        timeout=opts.timeout,
        size=int(opts.size),
    )
