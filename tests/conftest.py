"""Shared fakes for pipeline tests."""

import gzip
from typing import Optional, Union

import pytest
from purerequest.errors import TransportError
from purerequest.headers import Headers
from purerequest.logging_config import reset_logging
from purerequest.transport.protocols import HopRequest


class FakeResponse:
    """Scripted TransportResponse."""

    def __init__(
        self,
        status: int = 200,
        headers: Optional[dict] = None,
        chunks: Union[list[bytes], bytes] = (),
        reason: str = "OK",
        error: Optional[Exception] = None,
    ):
        self.status = status
        self.reason = reason
        self.headers = Headers(headers or {})
        self._chunks = [chunks] if isinstance(chunks, bytes) else list(chunks)
        self._error = error
        self.chunks_read = 0
        self.release_count = 0

    @property
    def released(self) -> bool:
        return self.release_count > 0

    async def iter_raw(self):
        for chunk in self._chunks:
            self.chunks_read += 1
            yield chunk
        if self._error is not None:
            raise self._error

    async def release(self) -> None:
        self.release_count += 1


class ScriptedTransport:
    """Transport that answers each send with the next scripted response."""

    def __init__(self, *responses: Union[FakeResponse, Exception]):
        self._responses = list(responses)
        self.sent: list[HopRequest] = []
        self.closed = False

    async def send(self, request: HopRequest) -> FakeResponse:
        self.sent.append(request)
        if not self._responses:
            raise TransportError(f"No scripted response for {request.url.href}")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


def redirect(status: int, location: Optional[str]) -> FakeResponse:
    headers = {"Location": location} if location is not None else {}
    return FakeResponse(status=status, headers=headers, reason="Redirect")


def gzipped(data: bytes) -> bytes:
    return gzip.compress(data)


@pytest.fixture
def ok_text():
    """Factory for a plain 200 response."""

    def make(body: bytes = b"ok", **headers) -> FakeResponse:
        return FakeResponse(200, headers=headers, chunks=[body])

    return make


@pytest.fixture(autouse=True)
def clean_logging():
    """Undo handlers installed by the CLI so tests don't leak them."""
    yield
    reset_logging()
