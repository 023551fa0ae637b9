"""Parsed request targets."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Union
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

from .errors import ValidationError
from .transport.adapters import adapter_for_scheme

# RFC 3986 sub-delims plus ":" and "@". "%" keeps existing escapes intact.
_PATH_SAFE = "/%:@!$&'()*+,;=~"
_QUERY_SAFE = _PATH_SAFE + "?"


def _query_text(value: Union[str, int, float, bool]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(params: Mapping[str, Union[str, int, float, bool]]) -> str:
    """Percent-encode ``params`` into ``k=v&k=v`` form, each part exactly once."""
    return "&".join(f"{quote(str(key), safe='')}={quote(_query_text(value), safe='')}" for key, value in params.items())


@dataclass(frozen=True)
class ParsedURL:
    """
    An absolute http(s) URL split into the parts a transport needs.

    Attributes:
        scheme: "http" or "https"
        host: Lower-cased host name (IPv6 literals without brackets)
        port: Explicit port, or the scheme's default
        path: Path component, "/" when empty
        query: Query string without the leading "?"
        netloc: ASCII authority used when rebuilding the URL

    Path and query are percent-encoded on parse. Existing ``%XX`` escapes
    are left as they are, so parsing an already-encoded URL changes nothing.
    """

    scheme: str
    host: str
    port: int
    path: str
    query: str
    netloc: str

    @classmethod
    def parse(cls, url: str) -> ParsedURL:
        """
        Parse an absolute URL.

        Raises:
            ValidationError: If the URL is relative, has no host, or uses an
                unsupported scheme
        """
        try:
            parts = urlsplit(str(url).strip())
            explicit_port = parts.port
        except ValueError as e:
            raise ValidationError(f"Invalid URL '{url}': {e}") from e

        if not parts.scheme or not parts.hostname:
            raise ValidationError(f"Only absolute URLs are supported, got '{url}'")
        adapter = adapter_for_scheme(parts.scheme)

        try:
            host = parts.hostname.encode("idna").decode("ascii").lower()
        except UnicodeError as e:
            raise ValidationError(f"Invalid host in URL '{url}': {e}") from e

        netloc = f"[{host}]" if ":" in host else host
        if explicit_port is not None:
            netloc = f"{netloc}:{explicit_port}"
        userinfo, at, _ = parts.netloc.rpartition("@")
        if at:
            netloc = f"{quote(userinfo, safe=_PATH_SAFE)}@{netloc}"

        return cls(
            scheme=adapter.scheme,
            host=host,
            port=explicit_port if explicit_port is not None else adapter.default_port,
            path=quote(parts.path, safe=_PATH_SAFE) or "/",
            query=quote(parts.query, safe=_QUERY_SAFE),
            netloc=netloc,
        )

    @property
    def href(self) -> str:
        return urlunsplit((self.scheme, self.netloc, self.path, self.query, ""))

    @property
    def target(self) -> str:
        """Request target sent on the request line: path plus query."""
        return f"{self.path}?{self.query}" if self.query else self.path

    @property
    def secure(self) -> bool:
        return adapter_for_scheme(self.scheme).secure

    def with_query(self, params: Mapping[str, Union[str, int, float, bool]]) -> ParsedURL:
        """Return a copy with ``params`` appended to the existing query."""
        if not params:
            return self
        extra = encode_query(params)
        return replace(self, query=f"{self.query}&{extra}" if self.query else extra)

    def join(self, location: str) -> ParsedURL:
        """Resolve a Location header value (absolute or relative) against this URL."""
        return ParsedURL.parse(urljoin(self.href, location.strip()))

    def __str__(self) -> str:
        return self.href
