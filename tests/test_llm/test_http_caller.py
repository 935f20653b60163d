"""Tests for the retrying JSON POST caller."""

import httpx
import pytest

from battle_master.llm.base import (
    ErrorKind,
    HttpError,
    MalformedResponse,
    NetworkFailure,
    RateLimited,
    RetriesExhausted,
)
from battle_master.llm.http import MAX_RETRIES, ResilientCaller

URL = "https://example.test/v1beta/models/m:generateContent?key=secret"


class Script:
    """Replays a list of responses (or exceptions) and counts requests."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        return step


def make_caller(script, max_retries=MAX_RETRIES):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    client = httpx.AsyncClient(transport=httpx.MockTransport(script))
    return ResilientCaller(client, max_retries=max_retries, sleep=fake_sleep), sleeps


def ok(payload=None):
    return httpx.Response(200, json=payload if payload is not None else {"candidates": []})


class TestSuccess:
    """Tests for calls that succeed."""

    @pytest.mark.asyncio
    async def test_returns_decoded_json(self):
        """Test that a 200 response body is returned as a dict."""
        script = Script(ok({"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}))
        caller, sleeps = make_caller(script)

        payload = await caller.call(URL, {"contents": []})

        assert payload["candidates"][0]["content"]["parts"][0]["text"] == "hi"
        assert len(script.requests) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_posts_json_body(self):
        """Test that the body is sent as JSON."""
        script = Script(ok())
        caller, _ = make_caller(script)

        await caller.call(URL, {"contents": [{"parts": [{"text": "X"}]}]})

        request = script.requests[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/json"
        assert b'"text"' in request.content


class TestRateLimiting:
    """Tests for 429 handling."""

    @pytest.mark.asyncio
    async def test_retries_until_budget_exhausted(self):
        """Test that a persistent 429 is retried exactly five times."""
        script = Script(httpx.Response(429))
        caller, sleeps = make_caller(script)

        with pytest.raises(RetriesExhausted) as exc_info:
            await caller.call(URL, {})

        assert len(script.requests) == 6
        assert exc_info.value.attempts == 6
        assert isinstance(exc_info.value.cause, RateLimited)
        assert exc_info.value.kind == ErrorKind.RATE_LIMITED
        assert str(exc_info.value).startswith("Fetch failed after 5 retries")

    @pytest.mark.asyncio
    async def test_backoff_doubles_with_jitter(self):
        """Test that the n-th wait is between 2**n and 2**n + 1 seconds."""
        script = Script(httpx.Response(429))
        caller, sleeps = make_caller(script)

        with pytest.raises(RetriesExhausted):
            await caller.call(URL, {})

        assert len(sleeps) == 5
        for n, delay in enumerate(sleeps):
            assert 2**n <= delay <= 2**n + 1

    @pytest.mark.asyncio
    async def test_recovers_after_rate_limit(self):
        """Test that a success after two 429s is returned."""
        script = Script(httpx.Response(429), httpx.Response(429), ok({"ok": True}))
        caller, sleeps = make_caller(script)

        payload = await caller.call(URL, {})

        assert payload == {"ok": True}
        assert len(script.requests) == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_configurable_budget(self):
        """Test that max_retries bounds the number of attempts."""
        script = Script(httpx.Response(429))
        caller, sleeps = make_caller(script, max_retries=2)

        with pytest.raises(RetriesExhausted) as exc_info:
            await caller.call(URL, {})

        assert caller.max_attempts == 3
        assert len(script.requests) == 3
        assert exc_info.value.attempts == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        """Test that max_retries=0 makes a single attempt."""
        script = Script(httpx.Response(429))
        caller, sleeps = make_caller(script, max_retries=0)

        with pytest.raises(RetriesExhausted) as exc_info:
            await caller.call(URL, {})

        assert len(script.requests) == 1
        assert exc_info.value.attempts == 1
        assert sleeps == []


class TestNonRetryable:
    """Tests for failures that must not be retried."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 403, 404, 500, 503])
    async def test_error_status_fails_immediately(self, status):
        """Test that non-429 error statuses make exactly one request."""
        script = Script(httpx.Response(status))
        caller, sleeps = make_caller(script)

        with pytest.raises(HttpError) as exc_info:
            await caller.call(URL, {})

        assert len(script.requests) == 1
        assert sleeps == []
        assert exc_info.value.status == status
        assert str(exc_info.value) == f"API call failed with status: {status}"

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self):
        """Test that a 200 with a non-JSON body raises MalformedResponse."""
        script = Script(httpx.Response(200, content=b"<html>oops</html>"))
        caller, sleeps = make_caller(script)

        with pytest.raises(MalformedResponse):
            await caller.call(URL, {})

        assert len(script.requests) == 1

    @pytest.mark.asyncio
    async def test_json_array_is_malformed(self):
        """Test that a top-level JSON array is rejected."""
        script = Script(httpx.Response(200, json=[1, 2, 3]))
        caller, _ = make_caller(script)

        with pytest.raises(MalformedResponse):
            await caller.call(URL, {})


class TestNetworkFailure:
    """Tests for transport errors."""

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self):
        """Test that a connection error is retried and can recover."""
        script = Script(httpx.ConnectError("connection refused"), ok({"ok": True}))
        caller, sleeps = make_caller(script)

        payload = await caller.call(URL, {})

        assert payload == {"ok": True}
        assert len(script.requests) == 2
        assert len(sleeps) == 1

    @pytest.mark.asyncio
    async def test_persistent_network_error_exhausts(self):
        """Test that persistent transport failure ends in RetriesExhausted."""
        script = Script(httpx.ReadTimeout("timed out"))
        caller, _ = make_caller(script)

        with pytest.raises(RetriesExhausted) as exc_info:
            await caller.call(URL, {})

        assert isinstance(exc_info.value.cause, NetworkFailure)
        assert exc_info.value.kind == ErrorKind.NETWORK_FAILURE
        assert len(script.requests) == 6


class TestRetryTelemetry:
    """Tests for retry logging."""

    @pytest.mark.asyncio
    async def test_retries_are_logged_without_api_key(self, isolated_observability):
        """Test that each retry writes an event with the query string removed."""
        script = Script(httpx.Response(429), httpx.Response(429), ok())
        caller, _ = make_caller(script)

        await caller.call(URL, {})

        events = isolated_observability.get_recent_events("http")
        assert len(events) == 2
        assert [e["attempt"] for e in events] == [1, 2]
        assert all(e["status"] == 429 for e in events)
        assert all("secret" not in e["url"] for e in events)
        assert events[0]["reason"] == "RateLimited"

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        """Test that aclose closes a client the caller created itself."""
        caller = ResilientCaller()
        await caller.aclose()
        assert caller._client.is_closed
