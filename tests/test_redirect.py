"""Tests for the redirect engine."""

import asyncio

import pytest
from conftest import FakeResponse, ScriptedTransport, gzipped, redirect
from purerequest.errors import (
    ExceededSizeError,
    RedirectError,
    RedirectLimitError,
    RedirectMissingLocationError,
    RequestTimeoutError,
    TransportError,
    ValidationError,
)
from purerequest.headers import Headers
from purerequest.redirect import (
    EngineState,
    RedirectEngine,
    RedirectState,
    is_redirect,
    rewrite_for_redirect,
)
from purerequest.resolver import resolve_request


def engine_for(transport, **options):
    options.setdefault("url", "http://example/a")
    return RedirectEngine(resolve_request(**options), transport)


async def _stream_body():
    yield b"chunk"


class TestRewriteRules:
    """Tests for method/body rewriting on redirect."""

    @pytest.mark.parametrize("method", ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
    def test_303_always_becomes_get(self, method):
        """Test 303 rewrites any method to a bodyless GET."""
        headers = Headers({"Content-Length": "3", "X-Keep": "1"})
        new_method, body, new_headers = rewrite_for_redirect(303, method, b"abc", headers)
        assert new_method == "GET"
        assert body is None
        assert not new_headers.has("content-length")
        assert new_headers.get("x-keep") == "1"

    @pytest.mark.parametrize("status", [301, 302])
    def test_moved_post_becomes_get(self, status):
        """Test 301/302 after POST."""
        method, body, headers = rewrite_for_redirect(status, "POST", "data", Headers({"content-length": "4"}))
        assert (method, body) == ("GET", None)
        assert not headers.has("content-length")

    @pytest.mark.parametrize("status", [301, 302])
    @pytest.mark.parametrize("method", ["GET", "HEAD", "PUT"])
    def test_moved_other_methods_preserved(self, status, method):
        """Test 301/302 keep non-POST methods and their body."""
        assert rewrite_for_redirect(status, method, "data", Headers())[:2] == (method, "data")

    @pytest.mark.parametrize("status", [307, 308])
    @pytest.mark.parametrize("method", ["GET", "POST", "PUT"])
    def test_307_308_never_rewrite(self, status, method):
        """Test 307/308 keep method and body."""
        assert rewrite_for_redirect(status, method, b"body", Headers())[:2] == (method, b"body")

    def test_headers_are_copied(self):
        """Test each hop gets its own header set."""
        original = Headers({"X-A": "1"})
        _, _, copied = rewrite_for_redirect(307, "GET", None, original)
        copied.set("x-a", "2")
        assert original.get("x-a") == "1"

    def test_is_redirect(self):
        """Test the redirect status set."""
        assert all(is_redirect(code) for code in (301, 302, 303, 307, 308))
        assert not any(is_redirect(code) for code in (200, 300, 304, 305, 306, 404))


class TestRedirectState:
    """Tests for the hop counter."""

    def test_exhausted(self):
        """Test the bound check."""
        state = RedirectState(max_hops=1)
        assert not state.exhausted
        state.count = 1
        assert state.exhausted
        assert RedirectState(max_hops=0).exhausted


class TestRedirectEngine:
    """Tests for RedirectEngine."""

    @pytest.mark.asyncio
    async def test_no_redirect(self):
        """Test a plain 200."""
        transport = ScriptedTransport(FakeResponse(200, chunks=[b"hi"]))
        engine = engine_for(transport)
        response = await engine.run()

        assert response.status == 200
        assert response.url == "http://example/a"
        assert await response.text() == "hi"
        assert engine.state.count == 0
        assert engine.phase is EngineState.DONE

    @pytest.mark.asyncio
    async def test_end_to_end_302_then_gzip(self):
        """Test GET /a -> 302 /b -> 200 gzip 'hello'."""
        first = redirect(302, "/b")
        second = FakeResponse(200, headers={"Content-Encoding": "gzip"}, chunks=[gzipped(b"hello")])
        transport = ScriptedTransport(first, second)
        engine = engine_for(transport)

        response = await engine.run()

        assert response.meta.status_code == 200
        assert await response.text() == "hello"
        assert engine.state.count == 1
        assert response.redirect_count == 1
        assert response.url == "http://example/b"
        assert [hop.url.href for hop in transport.sent] == ["http://example/a", "http://example/b"]
        assert transport.sent[1].method == "GET"
        assert first.released
        assert second.released

    @pytest.mark.asyncio
    async def test_hop_count_increments_per_redirect(self):
        """Test the counter and audit trail across several hops."""
        transport = ScriptedTransport(
            redirect(301, "/b"),
            redirect(307, "http://other.example/c"),
            redirect(308, "d"),
            FakeResponse(200),
        )
        engine = engine_for(transport)
        response = await engine.run()

        assert engine.state.count == 3
        assert [(hop.status, hop.location) for hop in response.redirects] == [
            (301, "http://example/b"),
            (307, "http://other.example/c"),
            (308, "http://other.example/d"),
        ]

    @pytest.mark.asyncio
    async def test_zero_max_redirects_fails_immediately(self):
        """Test max_redirects=0 with a redirect response."""
        first = redirect(302, "/b")
        transport = ScriptedTransport(first, FakeResponse(200))
        engine = engine_for(transport, max_redirects=0)

        with pytest.raises(RedirectLimitError) as exc_info:
            await engine.run()

        assert exc_info.value.url == "http://example/a"
        assert len(transport.sent) == 1
        assert first.released
        assert engine.phase is EngineState.FAILED

    @pytest.mark.asyncio
    async def test_limit_names_original_url(self):
        """Test the limit error after several hops."""
        transport = ScriptedTransport(redirect(302, "/b"), redirect(302, "/c"), redirect(302, "/d"))
        engine = engine_for(transport, max_redirects=2)

        with pytest.raises(RedirectLimitError, match="http://example/a"):
            await engine.run()
        assert engine.state.count == 2

    @pytest.mark.asyncio
    async def test_missing_location(self):
        """Test a redirect without Location."""
        first = redirect(301, None)
        engine = engine_for(ScriptedTransport(first))

        with pytest.raises(RedirectMissingLocationError):
            await engine.run()
        assert first.released

    @pytest.mark.asyncio
    async def test_follow_disabled_returns_redirect(self):
        """Test the redirect response is final when following is off."""
        transport = ScriptedTransport(redirect(302, "/b"))
        response = await engine_for(transport, follow_redirect=False).run()

        assert response.status == 302
        assert response.headers.get("location") == "/b"
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_303_after_put(self):
        """Test the next hop drops the body."""
        transport = ScriptedTransport(redirect(303, "/done"), FakeResponse(200))
        await engine_for(transport, method="PUT", body="x").run()

        hop = transport.sent[1]
        assert hop.method == "GET"
        assert hop.body is None

    @pytest.mark.asyncio
    async def test_302_after_post(self):
        """Test redirect-after-POST."""
        transport = ScriptedTransport(redirect(302, "/next"), FakeResponse(200))
        await engine_for(transport, method="POST", body="form").run()
        assert (transport.sent[1].method, transport.sent[1].body) == ("GET", None)

    @pytest.mark.asyncio
    async def test_307_keeps_post_body(self):
        """Test 307 resends method and body."""
        transport = ScriptedTransport(redirect(307, "/again"), FakeResponse(200))
        await engine_for(transport, method="POST", body="form").run()
        assert (transport.sent[1].method, transport.sent[1].body) == ("POST", "form")

    @pytest.mark.asyncio
    async def test_307_with_stream_body_fails(self):
        """Test a consumed stream body cannot be replayed."""
        first = redirect(307, "/again")
        engine = engine_for(ScriptedTransport(first), method="POST", body=_stream_body())
        with pytest.raises(RedirectError, match="streaming body"):
            await engine.run()
        assert first.released

    @pytest.mark.asyncio
    async def test_303_with_stream_body_is_fine(self):
        """Test a dropped stream body does not need replaying."""
        transport = ScriptedTransport(redirect(303, "/done"), FakeResponse(200))
        response = await engine_for(transport, method="POST", body=_stream_body()).run()
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_redirect_to_unsupported_scheme(self):
        """Test Location values are validated like request URLs."""
        first = redirect(302, "ftp://example/file")
        with pytest.raises(ValidationError):
            await engine_for(ScriptedTransport(first)).run()
        assert first.released

    @pytest.mark.asyncio
    async def test_hops_use_fresh_headers(self):
        """Test no header set is shared across hops."""
        transport = ScriptedTransport(redirect(302, "/b"), FakeResponse(200))
        await engine_for(transport, headers={"X-Trace": "1"}).run()
        first, second = transport.sent
        assert first.headers is not second.headers
        assert second.headers.get("x-trace") == "1"

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        """Test connection failures fail the engine."""
        engine = engine_for(ScriptedTransport(TransportError("refused")))
        with pytest.raises(TransportError, match="refused"):
            await engine.run()
        assert engine.phase is EngineState.FAILED

    @pytest.mark.asyncio
    async def test_timeout_waiting_for_response(self):
        """Test the per-hop deadline."""

        class SlowTransport(ScriptedTransport):
            async def send(self, request):
                await asyncio.sleep(10)

        engine = engine_for(SlowTransport(), timeout=0.05)
        with pytest.raises(RequestTimeoutError) as exc_info:
            await engine.run()
        assert isinstance(exc_info.value, TimeoutError)
        assert engine.phase is EngineState.FAILED

    @pytest.mark.asyncio
    async def test_idle_body_timeout(self):
        """Test the deadline also bounds each body chunk."""

        class StallingResponse(FakeResponse):
            async def iter_raw(self):
                yield b"first"
                await asyncio.sleep(10)
                yield b"never"

        stalled = StallingResponse(200)
        response = await engine_for(ScriptedTransport(stalled), timeout=0.05).run()
        with pytest.raises(RequestTimeoutError):
            await response.text()
        assert stalled.released

    @pytest.mark.asyncio
    async def test_head_response_not_decoded(self):
        """Test HEAD skips decoding even with Content-Encoding."""
        transport = ScriptedTransport(FakeResponse(200, headers={"Content-Encoding": "gzip"}, chunks=[]))
        response = await engine_for(transport, method="HEAD").run()
        assert await response.buffer() == b""

    @pytest.mark.asyncio
    async def test_size_limit_applies_to_decoded_body(self):
        """Test the ceiling on the final response."""
        body = gzipped(b"x" * 1000)
        transport = ScriptedTransport(FakeResponse(200, headers={"Content-Encoding": "gzip"}, chunks=[body]))
        response = await engine_for(transport, size=100).run()

        with pytest.raises(ExceededSizeError):
            await response.buffer()

    @pytest.mark.asyncio
    async def test_single_use(self):
        """Test run() cannot be called twice."""
        engine = engine_for(ScriptedTransport(FakeResponse(200), FakeResponse(200)))
        await engine.run()
        with pytest.raises(RuntimeError):
            await engine.run()

    @pytest.mark.asyncio
    async def test_on_close_called_after_release(self):
        """Test the close hook runs once the response is closed."""
        closed = []

        async def on_close():
            closed.append(True)

        final = FakeResponse(200, chunks=[b"x"])
        engine = RedirectEngine(resolve_request(url="http://example/a"), ScriptedTransport(final), on_close=on_close)
        response = await engine.run()
        await response.close()
        await response.close()
        assert final.released
        assert closed == [True]
