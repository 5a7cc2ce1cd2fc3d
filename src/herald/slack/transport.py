"""Message transport: validated, credentialed delivery to Slack channels."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from herald.errors import (
    HeraldError,
    NotInChannelError,
    SlackApiError,
)
from herald.retry import API_CALL_POLICY, DEFAULT_POLICY, RetryPolicy, with_retry
from herald.slack.client import SlackClient
from herald.slack.validation import (
    validate_and_sanitize_message,
    validate_channel_id,
    validate_team_id,
)

if TYPE_CHECKING:
    from herald.auth.store import CredentialStore

logger = logging.getLogger(__name__)

# Join failures that usually mean a private channel the bot must be invited to
PRIVATE_CHANNEL_ERRORS = frozenset({"channel_not_found", "not_in_channel", "is_archived"})


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    is_private: bool = False


@dataclass(frozen=True)
class JoinResult:
    joined: bool
    is_private: bool = False
    error: str | None = None


@dataclass(frozen=True)
class PostedMessage:
    channel: str
    ts: str | None = None


class MessageTransport:
    """Delivers messages to Slack on behalf of a workspace.

    Tokens come from the credential store on every call, so an expired
    token is refreshed before it reaches Slack.
    """

    def __init__(
        self,
        credentials: "CredentialStore",
        client: SlackClient,
        policy: RetryPolicy = API_CALL_POLICY,
        token_policy: RetryPolicy = DEFAULT_POLICY,
    ):
        self._credentials = credentials
        self._client = client
        self._policy = policy
        self._token_policy = token_policy

    async def _resolve_token(self, team_id: str) -> str:
        # RefreshFailedError is transient; credential errors are terminal
        return await with_retry(
            lambda: self._credentials.resolve_token(team_id),
            self._token_policy,
            operation_name="resolve_token",
        )

    async def deliver(self, team_id: str, channel_id: str, body: str) -> PostedMessage:
        """Post ``body`` to a channel.

        Raises:
            ValidationError: Bad ids or unsafe/oversized body; no network call made.
            CredentialError: No usable credential for the workspace.
            NotInChannelError: The bot is not a member of the channel.
            SlackApiError / TransientTransportError: Delivery failed after retries.
        """
        validate_team_id(team_id)
        validate_channel_id(channel_id)
        text = validate_and_sanitize_message(body)

        token = await self._resolve_token(team_id)

        join = await self._join_with_token(token, channel_id)
        if not join.joined:
            logger.info(
                "channel_join_skipped",
                extra={
                    "slack.channel_id": channel_id,
                    "slack.error": join.error,
                    "slack.is_private": join.is_private,
                },
            )

        try:
            response = await with_retry(
                lambda: self._client.chat_post_message(token, channel_id, text),
                self._policy,
                operation_name="chat.postMessage",
            )
        except SlackApiError as e:
            if e.error == "not_in_channel":
                raise NotInChannelError(channel_id) from e
            raise

        logger.info(
            "message_delivered",
            extra={"slack.team_id": team_id, "slack.channel_id": channel_id},
        )
        return PostedMessage(
            channel=response.get("channel") or channel_id,
            ts=response.get("ts"),
        )

    async def list_channels(self, team_id: str) -> list[Channel]:
        """List public and private channels visible to the workspace's bot."""
        validate_team_id(team_id)
        token = await self._resolve_token(team_id)
        raw = await with_retry(
            lambda: self._client.conversations_list(token),
            self._policy,
            operation_name="conversations.list",
        )
        return [
            Channel(
                id=channel["id"],
                name=channel.get("name") or "",
                is_private=bool(channel.get("is_private")),
            )
            for channel in raw
            if channel.get("id")
        ]

    async def join_channel(self, team_id: str, channel_id: str) -> JoinResult:
        """Best-effort join; never raises for Slack or credential failures."""
        try:
            token = await self._resolve_token(team_id)
        except HeraldError as e:
            return JoinResult(joined=False, error=e.code)
        return await self._join_with_token(token, channel_id)

    async def _join_with_token(self, token: str, channel_id: str) -> JoinResult:
        is_private = False
        try:
            info = await self._client.conversations_info(token, channel_id)
            is_private = bool(info.get("is_private"))
        except (HeraldError, httpx.HTTPError) as e:
            logger.debug(
                "channel_info_unavailable",
                extra={"slack.channel_id": channel_id, "error.message": str(e)},
            )

        try:
            await self._client.conversations_join(token, channel_id)
        except SlackApiError as e:
            return JoinResult(
                joined=False,
                is_private=e.error in PRIVATE_CHANNEL_ERRORS,
                error=e.error,
            )
        except (HeraldError, httpx.HTTPError) as e:
            return JoinResult(joined=False, error=str(e))

        logger.debug("channel_joined", extra={"slack.channel_id": channel_id})
        return JoinResult(joined=True, is_private=is_private)
