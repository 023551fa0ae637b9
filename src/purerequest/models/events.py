"""Data records produced while a request runs."""

from dataclasses import dataclass, field
from typing import Callable, Optional

from ..headers import Headers


@dataclass(frozen=True)
class RedirectHop:
    """
    One followed redirect.

    Attributes:
        url: URL that answered with the redirect
        status: Redirect status code (301, 302, 303, 307 or 308)
        location: Absolute URL the next hop was sent to
    """

    url: str
    status: int
    location: str


@dataclass
class ResponseMeta:
    """
    Status, final URL and headers of the terminal response.

    Attributes:
        status_code: HTTP status code of the last hop
        url: Effective URL after every followed redirect
        headers: Response headers of the last hop
        redirects: Followed hops in order
    """

    status_code: int
    url: str
    headers: Headers
    reason: Optional[str] = None
    redirects: list[RedirectHop] = field(default_factory=list)

    @property
    def redirect_count(self) -> int:
        return len(self.redirects)


@dataclass(frozen=True)
class ProgressInfo:
    """
    Download progress snapshot passed to progress callbacks.

    ``total`` and ``percent`` are None when the server sent no
    Content-Length.
    """

    transferred: int
    delta: int
    total: Optional[int]
    percent: Optional[float]
    bytes_per_second: float

    @property
    def is_indeterminate(self) -> bool:
        return self.total is None


ProgressCallback = Callable[[ProgressInfo], None]
