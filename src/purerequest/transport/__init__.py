"""Network transports for purerequest."""

from .adapters import HTTP, HTTPS, SchemeAdapter, adapter_for_scheme
from .protocols import HopRequest, Transport, TransportResponse
from .session import AiohttpResponse, AiohttpTransport

__all__ = [
    "HTTP",
    "HTTPS",
    "AiohttpResponse",
    "AiohttpTransport",
    "HopRequest",
    "SchemeAdapter",
    "Transport",
    "TransportResponse",
    "adapter_for_scheme",
]
