"""
purerequest - HTTP(S) requests with redirect following and transparent decompression.

Usage:
    from purerequest import request

    async with await request("https://example.com/data.json", timeout=10) as response:
        if response.ok:
            data = await response.json()
"""

__version__ = "3.0.0"

from .client import Request, fetch_json, fetch_stream, request
from .errors import (
    DecodeError,
    DigestMismatchError,
    ExceededSizeError,
    RedirectError,
    RedirectLimitError,
    RedirectMissingLocationError,
    RequestError,
    RequestTimeoutError,
    ResponseStatusError,
    TransportError,
    ValidationError,
)
from .headers import Headers
from .models.config import RequestOptions, ValidateOptions
from .models.events import ProgressInfo, RedirectHop, ResponseMeta
from .response import Blob, Response

__all__ = [
    "__version__",
    # Core
    "Request",
    "request",
    "fetch_json",
    "fetch_stream",
    "Response",
    "Blob",
    "Headers",
    # Options
    "RequestOptions",
    "ValidateOptions",
    # Records
    "ProgressInfo",
    "RedirectHop",
    "ResponseMeta",
    # Errors
    "RequestError",
    "ValidationError",
    "DigestMismatchError",
    "TransportError",
    "RequestTimeoutError",
    "RedirectError",
    "RedirectLimitError",
    "RedirectMissingLocationError",
    "ExceededSizeError",
    "DecodeError",
    "ResponseStatusError",
]
