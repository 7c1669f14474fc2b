"""Slack Web API client: async httpx wrapper with rate-limit aware retries.

Every Slack response carries an ``ok`` flag independent of the HTTP status;
``ok: false`` is raised as :class:`SlackApiError` even on HTTP 200.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from notifeed.errors.exceptions import RateLimitError, SlackApiError, SlackTransportError
from notifeed.models.slack import SlackChannel, SlackMessage, SlackPostedMessage, SlackSearchResult

logger = logging.getLogger(__name__)

BASE_URL = "https://slack.com/api"
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
DEFAULT_TIMEOUT_SECONDS = 30.0


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(seconds, 0.0)


class SlackClient:
    """Bearer-token client for the subset of the Slack Web API notifeed uses.

    Use as an async context manager so the underlying connection pool is
    closed when a poll cycle ends::

        async with SlackClient(token) as client:
            channels = await client.list_channels()
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._max_retries = max(1, max_retries)
        self._initial_backoff = initial_backoff
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=utf-8",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> SlackClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _request(
        self,
        http_method: str,
        api_method: str,
        *,
        params: dict[str, str] | None = None,
        body: dict | None = None,
    ) -> dict:
        """Send one API call, retrying on 429 and on network errors."""
        last_transport_error: httpx.TransportError | None = None
        last_retry_after: float | None = None

        for attempt in range(self._max_retries):
            is_last = attempt == self._max_retries - 1
            try:
                response = await self._client.request(http_method, api_method, params=params, json=body)
            except httpx.TransportError as exc:
                last_transport_error = exc
                wait = self._initial_backoff * 2**attempt
                logger.warning("Slack %s request failed (%s), attempt %d/%d", api_method, exc, attempt + 1, self._max_retries)
                if not is_last:
                    await self._sleep(wait)
                continue

            if response.status_code == 429:
                last_transport_error = None
                last_retry_after = _parse_retry_after(response.headers.get("retry-after"))
                wait = last_retry_after if last_retry_after is not None else self._initial_backoff * 2**attempt
                logger.warning("Slack rate limited on %s, retrying in %.1fs", api_method, wait)
                if not is_last:
                    await self._sleep(wait)
                continue

            if response.is_error:
                raise SlackApiError(
                    response.status_code,
                    f"Slack API HTTP error {response.status_code}: {response.text}",
                )

            return self._unwrap(response)

        if last_transport_error is not None:
            raise SlackTransportError(f"Slack API unreachable: {last_transport_error}")
        raise RateLimitError(retry_after=last_retry_after)

    @staticmethod
    def _unwrap(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as exc:
            raise SlackApiError(response.status_code, "Slack API returned a non-JSON body") from exc

        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error") if isinstance(data, dict) else None
            raise SlackApiError(
                response.status_code,
                f"Slack API error: {error or 'unknown'}",
                details={"error": error},
            )
        return data

    async def _get(self, api_method: str, params: dict[str, str]) -> dict:
        return await self._request("GET", api_method, params=params)

    async def _post(self, api_method: str, body: dict) -> dict:
        return await self._request("POST", api_method, body=body)

    # ------------------------------------------------------------------
    # Read surface used by the watcher
    # ------------------------------------------------------------------

    async def list_channels(self, limit: int = 100) -> list[SlackChannel]:
        """List public and private channels visible to the token, archived excluded."""
        data = await self._get(
            "conversations.list",
            {
                "limit": str(limit),
                "types": "public_channel,private_channel",
                "exclude_archived": "true",
            },
        )
        return [SlackChannel.model_validate(c) for c in data.get("channels", [])]

    async def read_channel(self, channel: str, limit: int = 20) -> list[SlackMessage]:
        """Read the most recent messages of a channel, newest first."""
        data = await self._get("conversations.history", {"channel": channel, "limit": str(limit)})
        return [SlackMessage.model_validate(m) for m in data.get("messages", [])]

    async def get_thread_replies(self, channel: str, thread_ts: str) -> list[SlackMessage]:
        data = await self._get("conversations.replies", {"channel": channel, "ts": thread_ts})
        return [SlackMessage.model_validate(m) for m in data.get("messages", [])]

    # ------------------------------------------------------------------
    # Outbound surface
    # ------------------------------------------------------------------

    async def send_message(self, channel: str, text: str, thread_ts: str | None = None) -> SlackPostedMessage:
        body: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            body["thread_ts"] = thread_ts
        data = await self._post("chat.postMessage", body)
        return SlackPostedMessage.model_validate(data)

    async def search(self, query: str, count: int = 20) -> SlackSearchResult:
        data = await self._get("search.messages", {"query": query, "count": str(count)})
        messages = data.get("messages") or {}
        return SlackSearchResult(
            matches=[SlackMessage.model_validate(m) for m in messages.get("matches", [])],
            total=messages.get("total", 0),
        )
