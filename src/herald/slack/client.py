"""Thin async client for the Slack Web API.

Every Web API method is a form-encoded POST answering
``{"ok": true, ...}`` or ``{"ok": false, "error": "<code>"}``. This client
maps transport-level failures onto the error taxonomy and leaves retry
decisions to the caller.
"""

import logging
from typing import Any

import httpx

from herald.errors import SlackApiError, TransientTransportError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://slack.com/api/"
DEFAULT_TIMEOUT = 10.0
CHANNEL_PAGE_LIMIT = 200


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class SlackClient:
    """Async Slack Web API client.

    The underlying ``httpx.AsyncClient`` may be injected (tests pass one
    wired to ``httpx.MockTransport``); otherwise one is created lazily and
    owned by this client.
    """

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._http = http
        self._owns_http = http is None
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def call(
        self,
        method: str,
        token: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a Web API method.

        Raises:
            TransientTransportError: 429 (with ``retry_after``) or 5xx.
            SlackApiError: Slack answered ``ok: false`` or a non-JSON body.
            httpx.TransportError: Network failures and timeouts, unchanged.
        """
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        payload = {k: v for k, v in (data or {}).items() if v is not None}

        response = await self._client().post(
            self._base_url + method,
            data=payload,
            headers=headers,
        )

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(
                "slack_rate_limited",
                extra={"slack.method": method, "retry_after_s": retry_after},
            )
            raise TransientTransportError(
                f"Slack {method} rate limited",
                status_code=429,
                retry_after=retry_after,
            )
        if response.status_code >= 500:
            raise TransientTransportError(
                f"Slack {method} returned {response.status_code}",
                status_code=response.status_code,
            )

        error = (
            f"http_{response.status_code}"
            if response.status_code >= 400
            else "invalid_response"
        )
        try:
            body = response.json()
        except ValueError as e:
            raise SlackApiError(
                method, error, f"Slack {method} returned non-JSON body"
            ) from e
        if not isinstance(body, dict):
            raise SlackApiError(
                method, error, f"Slack {method} returned a non-object JSON body"
            )

        if not body.get("ok"):
            error = body.get("error") or f"http_{response.status_code}"
            raise SlackApiError(method, error)
        return body

    async def conversations_list(
        self, token: str, types: str = "public_channel,private_channel"
    ) -> list[dict[str, Any]]:
        """List all channels visible to the token, following cursors."""
        channels: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            body = await self.call(
                "conversations.list",
                token,
                {
                    "types": types,
                    "exclude_archived": "true",
                    "limit": CHANNEL_PAGE_LIMIT,
                    "cursor": cursor,
                },
            )
            channels.extend(body.get("channels") or [])
            cursor = (body.get("response_metadata") or {}).get("next_cursor") or None
            if not cursor:
                return channels

    async def conversations_info(self, token: str, channel: str) -> dict[str, Any]:
        body = await self.call("conversations.info", token, {"channel": channel})
        return body.get("channel") or {}

    async def conversations_join(self, token: str, channel: str) -> dict[str, Any]:
        body = await self.call("conversations.join", token, {"channel": channel})
        return body.get("channel") or {}

    async def chat_post_message(
        self, token: str, channel: str, text: str
    ) -> dict[str, Any]:
        return await self.call(
            "chat.postMessage", token, {"channel": channel, "text": text}
        )
