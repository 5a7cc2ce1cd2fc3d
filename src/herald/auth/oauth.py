"""Slack OAuth v2 flow: authorization URL, code exchange and token refresh."""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

from herald.config.models import DEFAULT_SLACK_SCOPE, SLACK_AUTHORIZE_URL
from herald.errors import SlackApiError
from herald.slack.client import SlackClient

OAUTH_ACCESS_METHOD = "oauth.v2.access"


@dataclass
class TokenGrant:
    """Token fields returned by ``oauth.v2.access``."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None  # seconds
    team_id: str | None = None
    team_name: str | None = None
    bot_user_id: str | None = None

    def expires_at(self, now: datetime | None = None) -> datetime | None:
        if self.expires_in is None:
            return None
        return (now or datetime.now(UTC)) + timedelta(seconds=self.expires_in)


def _grant_from_response(data: dict) -> TokenGrant:
    access_token = data.get("access_token")
    if not access_token:
        raise SlackApiError(
            OAUTH_ACCESS_METHOD,
            "invalid_response",
            f"Token response missing access_token: {sorted(data.keys())}",
        )
    team = data.get("team") or {}
    expires_in = data.get("expires_in")
    return TokenGrant(
        access_token=access_token,
        refresh_token=data.get("refresh_token"),
        expires_in=int(expires_in) if isinstance(expires_in, int | float) else None,
        team_id=team.get("id"),
        team_name=team.get("name"),
        bot_user_id=data.get("bot_user_id"),
    )


class SlackOAuthClient:
    """Client for Slack's OAuth v2 token endpoint."""

    def __init__(
        self,
        slack: SlackClient,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None = None,
        scope: str = DEFAULT_SLACK_SCOPE,
        authorize_url: str = SLACK_AUTHORIZE_URL,
    ):
        self._slack = slack
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._scope = scope
        self._authorize_url = authorize_url

    def build_authorization_url(self, state: str | None = None) -> str:
        """Build the Slack "Add to Slack" authorization URL."""
        params = {
            "client_id": self._client_id or "",
            "scope": self._scope,
            "redirect_uri": self._redirect_uri or "",
            "state": state or secrets.token_hex(16),
        }
        return f"{self._authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for tokens.

        Raises:
            SlackApiError: If Slack rejects the code.
        """
        data = await self._slack.call(
            OAUTH_ACCESS_METHOD,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "code": code,
                "redirect_uri": self._redirect_uri,
            },
        )
        grant = _grant_from_response(data)
        if not grant.team_id:
            raise SlackApiError(
                OAUTH_ACCESS_METHOD, "invalid_response", "Token response missing team"
            )
        return grant

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new token set.

        Raises:
            SlackApiError: Slack rejected the request (``error`` holds the code).
            TransientTransportError / httpx.TransportError: transport failures.
        """
        data = await self._slack.call(
            OAUTH_ACCESS_METHOD,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )
        return _grant_from_response(data)
