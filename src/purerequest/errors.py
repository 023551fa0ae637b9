"""Exception hierarchy for purerequest."""

from __future__ import annotations

from typing import Optional


class RequestError(Exception):
    """Base class for every error raised by a request pipeline."""


class ValidationError(RequestError, ValueError):
    """Request options are invalid. Raised before any network I/O."""


class DigestMismatchError(ValidationError):
    """Downloaded content does not match the expected digest."""

    def __init__(self, algorithm: str, expected: str, actual: str):
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
        super().__init__(f"{algorithm} digest mismatch: expected {expected}, got {actual}")


class TransportError(RequestError):
    """The connection failed or was dropped by the peer."""


class RequestTimeoutError(RequestError, TimeoutError):
    """No response (or no further body data) arrived within the timeout."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request to {url} timed out after {timeout:g}s")


class RedirectError(RequestError):
    """Base class for redirect handling errors."""


class RedirectLimitError(RedirectError):
    """Redirect chain reached the configured hop limit."""

    def __init__(self, url: str, max_redirects: int):
        self.url = url
        self.max_redirects = max_redirects
        super().__init__(f"Maximum redirect count ({max_redirects}) reached at: {url}")


class RedirectMissingLocationError(RedirectError):
    """Redirect response carried no Location header."""

    def __init__(self, url: str, status: int):
        self.url = url
        self.status = status
        super().__init__(f"Redirect response (status {status}) missing Location header at: {url}")


class ExceededSizeError(RequestError):
    """Response body grew past the configured size ceiling."""

    def __init__(self, url: str, limit: int):
        self.url = url
        self.limit = limit
        super().__init__(f"Response body from {url} exceeded size limit of {limit} bytes")


class DecodeError(RequestError):
    """Response body could not be decompressed or parsed."""


class ResponseStatusError(RequestError):
    """Server answered with a non-2xx status where success was required."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None):
        self.url = url
        self.status = status
        self.reason = reason
        message = f"Server responded with {status}"
        if reason:
            message += f": {reason}"
        super().__init__(f"{message} ({url})")
