"""Option models and result records."""

from .config import ByteSize, RequestOptions, ValidateOptions
from .events import ProgressCallback, ProgressInfo, RedirectHop, ResponseMeta

__all__ = [
    "ByteSize",
    "ProgressCallback",
    "ProgressInfo",
    "RedirectHop",
    "RequestOptions",
    "ResponseMeta",
    "ValidateOptions",
]
