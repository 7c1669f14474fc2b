"""Tests for the Slack Web API client.

Covers:
- retry on HTTP 429 (Retry-After header, exponential fallback, exhaustion)
- retry on network errors
- the ``ok`` envelope check on HTTP 200
- request shapes for the read and outbound methods
"""

import json

import httpx
import pytest

from notifeed.errors.exceptions import RateLimitError, SlackApiError, SlackTransportError
from notifeed.integrations.slack_client import SlackClient, _parse_retry_after

BASE_URL = "https://slack.test/api"


def _ok(**payload) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, **payload})


class ScriptedTransport:
    """Answers requests from a fixed script and records what was sent."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_client(sleeps):
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def _make(script: ScriptedTransport, **kwargs) -> SlackClient:
        return SlackClient(
            "xoxb-test",
            base_url=BASE_URL,
            transport=httpx.MockTransport(script),
            sleep=fake_sleep,
            **kwargs,
        )

    return _make


# ---------------------------------------------------------------------------
# Retry-After parsing
# ---------------------------------------------------------------------------


class TestParseRetryAfter:
    def test_seconds(self):
        assert _parse_retry_after("3") == 3.0

    def test_missing(self):
        assert _parse_retry_after(None) is None
        assert _parse_retry_after("") is None

    def test_garbage(self):
        assert _parse_retry_after("soon") is None

    def test_negative_clamped(self):
        assert _parse_retry_after("-1") == 0.0


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


class TestRateLimiting:
    async def test_retry_after_header_is_honored(self, make_client, sleeps):
        script = ScriptedTransport(
            httpx.Response(429, headers={"Retry-After": "2"}),
            _ok(messages=[]),
        )
        async with make_client(script) as client:
            messages = await client.read_channel("C1")

        assert messages == []
        assert sleeps == [2.0]
        assert len(script.requests) == 2

    async def test_exponential_backoff_without_header(self, make_client, sleeps):
        script = ScriptedTransport(
            httpx.Response(429),
            httpx.Response(429),
            _ok(messages=[]),
        )
        async with make_client(script) as client:
            await client.read_channel("C1")

        assert sleeps == [1.0, 2.0]

    async def test_exhausted_retries_raise_rate_limit_error(self, make_client, sleeps):
        script = ScriptedTransport(httpx.Response(429, headers={"Retry-After": "1"}))
        async with make_client(script) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.read_channel("C1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.retry_after == 1.0
        assert len(script.requests) == 3
        # No sleep after the final attempt
        assert sleeps == [1.0, 1.0]

    async def test_custom_retry_budget(self, make_client, sleeps):
        script = ScriptedTransport(httpx.Response(429))
        async with make_client(script, max_retries=5, initial_backoff=0.5) as client:
            with pytest.raises(RateLimitError):
                await client.list_channels()

        assert len(script.requests) == 5
        assert sleeps == [0.5, 1.0, 2.0, 4.0]


# ---------------------------------------------------------------------------
# Network errors
# ---------------------------------------------------------------------------


class TestNetworkErrors:
    async def test_recovers_after_connect_error(self, make_client, sleeps):
        script = ScriptedTransport(
            httpx.ConnectError("connection refused"),
            _ok(channels=[]),
        )
        async with make_client(script) as client:
            channels = await client.list_channels()

        assert channels == []
        assert sleeps == [1.0]

    async def test_persistent_failure_raises_transport_error(self, make_client, sleeps):
        script = ScriptedTransport(httpx.ConnectError("connection refused"))
        async with make_client(script) as client:
            with pytest.raises(SlackTransportError) as exc_info:
                await client.list_channels()

        assert "connection refused" in str(exc_info.value)
        assert exc_info.value.code == "TRANSPORT_ERROR"
        assert len(script.requests) == 3
        assert sleeps == [1.0, 2.0]


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


class TestEnvelope:
    async def test_ok_false_raises_on_http_200(self, make_client, sleeps):
        script = ScriptedTransport(httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))
        async with make_client(script) as client:
            with pytest.raises(SlackApiError) as exc_info:
                await client.read_channel("C404")

        assert str(exc_info.value) == "Slack API error: channel_not_found"
        assert exc_info.value.details == {"error": "channel_not_found"}
        assert len(script.requests) == 1
        assert sleeps == []

    async def test_http_error_is_not_retried(self, make_client):
        script = ScriptedTransport(httpx.Response(500, text="upstream exploded"))
        async with make_client(script) as client:
            with pytest.raises(SlackApiError) as exc_info:
                await client.read_channel("C1")

        assert exc_info.value.status_code == 500
        assert "upstream exploded" in exc_info.value.message
        assert len(script.requests) == 1

    async def test_non_json_body(self, make_client):
        script = ScriptedTransport(httpx.Response(200, text="<html>"))
        async with make_client(script) as client:
            with pytest.raises(SlackApiError, match="non-JSON"):
                await client.read_channel("C1")


# ---------------------------------------------------------------------------
# Methods
# ---------------------------------------------------------------------------


class TestMethods:
    async def test_list_channels_request(self, make_client):
        script = ScriptedTransport(
            _ok(channels=[
                {"id": "C1", "name": "general", "is_member": True, "is_archived": False, "topic": {}},
                {"id": "C2", "name": "random"},
            ])
        )
        async with make_client(script) as client:
            channels = await client.list_channels(limit=50)

        request = script.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/conversations.list"
        assert request.url.params["types"] == "public_channel,private_channel"
        assert request.url.params["exclude_archived"] == "true"
        assert request.url.params["limit"] == "50"
        assert request.headers["Authorization"] == "Bearer xoxb-test"

        assert [c.id for c in channels] == ["C1", "C2"]
        assert channels[0].is_member is True
        assert channels[1].is_member is False

    async def test_read_channel(self, make_client):
        script = ScriptedTransport(
            _ok(messages=[
                {"ts": "200.0", "text": "<@U1> hello", "user": "U2"},
                {"ts": "100.0", "text": "hi", "thread_ts": "90.0"},
            ])
        )
        async with make_client(script) as client:
            messages = await client.read_channel("C1")

        request = script.requests[0]
        assert request.url.path == "/api/conversations.history"
        assert request.url.params["channel"] == "C1"
        assert request.url.params["limit"] == "20"
        assert messages[0].user == "U2"
        assert messages[1].thread_ts == "90.0"

    async def test_get_thread_replies(self, make_client):
        script = ScriptedTransport(_ok(messages=[{"ts": "90.0", "text": "root"}, {"ts": "95.0", "text": "reply"}]))
        async with make_client(script) as client:
            replies = await client.get_thread_replies("C1", "90.0")

        assert script.requests[0].url.params["ts"] == "90.0"
        assert [m.text for m in replies] == ["root", "reply"]

    async def test_send_message_in_thread(self, make_client):
        script = ScriptedTransport(_ok(ts="300.0", channel="C1"))
        async with make_client(script) as client:
            posted = await client.send_message("C1", "on it", thread_ts="200.0")

        request = script.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/chat.postMessage"
        assert json.loads(request.content) == {"channel": "C1", "text": "on it", "thread_ts": "200.0"}
        assert posted.ts == "300.0"

    async def test_search(self, make_client):
        script = ScriptedTransport(
            _ok(messages={"matches": [{"ts": "1.0", "text": "deploy done"}], "total": 7})
        )
        async with make_client(script) as client:
            result = await client.search("deploy", count=5)

        assert script.requests[0].url.params["query"] == "deploy"
        assert script.requests[0].url.params["count"] == "5"
        assert result.total == 7
        assert result.matches[0].text == "deploy done"
