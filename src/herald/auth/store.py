"""Per-workspace credential storage with transparent refresh."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx
from sqlalchemy import delete, func, select

from herald.auth.oauth import SlackOAuthClient
from herald.db import Database, SlackCredential, utc_now
from herald.errors import (
    CredentialExpiredError,
    NoCredentialError,
    ReauthRequiredError,
    RefreshFailedError,
    SlackApiError,
    TransientTransportError,
)

logger = logging.getLogger(__name__)

# Slack error codes meaning the refresh token itself is dead
INVALID_REFRESH_ERRORS = frozenset({"invalid_refresh_token", "invalid_grant", "http_400"})


@dataclass
class Credential:
    """Snapshot of a workspace's stored tokens."""

    team_id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    bot_token: str | None = None
    team_name: str = ""

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    @property
    def effective_bot_token(self) -> str:
        return self.bot_token or self.access_token

    @classmethod
    def from_row(cls, row: SlackCredential) -> "Credential":
        return cls(
            team_id=row.team_id,
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            expires_at=row.expires_at,
            bot_token=row.bot_token,
            team_name=row.team_name,
        )


class CredentialStore:
    """Resolves a currently valid access token per workspace, or fails explicitly.

    Every credential change goes through ``save``, which writes all token
    fields in a single transaction.
    """

    def __init__(
        self,
        database: Database,
        oauth: SlackOAuthClient,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._db = database
        self._oauth = oauth
        self._clock = clock
        self._refresh_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, team_id: str) -> Credential | None:
        async with self._db.session() as session:
            row = await session.get(SlackCredential, team_id)
            return Credential.from_row(row) if row else None

    async def save(self, credential: Credential) -> None:
        """Insert or replace the credential for its workspace."""
        async with self._db.session() as session:
            row = await session.get(SlackCredential, credential.team_id)
            if row is None:
                row = SlackCredential(team_id=credential.team_id)
                session.add(row)
            row.access_token = credential.access_token
            row.refresh_token = credential.refresh_token
            row.expires_at = credential.expires_at
            row.bot_token = credential.bot_token or credential.access_token
            row.team_name = credential.team_name
            row.updated_at = self._clock()

    async def delete(self, team_id: str) -> bool:
        async with self._db.session() as session:
            result = await session.execute(
                delete(SlackCredential).where(SlackCredential.team_id == team_id)
            )
            deleted = result.rowcount > 0
        if deleted:
            logger.info("credential_deleted", extra={"slack.team_id": team_id})
        return deleted

    async def count(self) -> int:
        async with self._db.session() as session:
            result = await session.execute(select(func.count()).select_from(SlackCredential))
            return int(result.scalar_one())

    async def exchange_code(self, code: str) -> Credential:
        """Complete the OAuth authorization-code grant and store the result."""
        grant = await self._oauth.exchange_code(code)
        assert grant.team_id is not None
        credential = Credential(
            team_id=grant.team_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at(self._clock()),
            # OAuth v2 issues the bot token as the access token
            bot_token=grant.access_token,
            team_name=grant.team_name or "",
        )
        await self.save(credential)
        logger.info(
            "workspace_authorized",
            extra={"slack.team_id": credential.team_id, "slack.team_name": credential.team_name},
        )
        return credential

    async def resolve_token(self, team_id: str) -> str:
        """Return a usable bot token, refreshing it if it has expired.

        Raises:
            NoCredentialError: No record for this workspace.
            CredentialExpiredError: Expired and no refresh token stored.
            ReauthRequiredError: Refresh token rejected; the record is deleted.
            RefreshFailedError: Refresh failed for a transient reason.
        """
        credential = await self.get(team_id)
        if credential is None:
            raise NoCredentialError(team_id)
        if not credential.is_expired(self._clock()):
            return credential.effective_bot_token

        # One refresh per workspace at a time; rotated refresh tokens are
        # single-use, so waiters re-read instead of refreshing again.
        async with self._refresh_locks[team_id]:
            credential = await self.get(team_id)
            if credential is None:
                raise NoCredentialError(team_id)
            if not credential.is_expired(self._clock()):
                return credential.effective_bot_token
            if not credential.refresh_token:
                raise CredentialExpiredError(team_id)
            return await self.refresh(team_id, credential.refresh_token)

    async def refresh(self, team_id: str, refresh_token: str) -> str:
        """Refresh the workspace's tokens and persist them atomically.

        Not retried here; RefreshFailedError is left to the caller's policy.
        """
        logger.info("credential_refreshing", extra={"slack.team_id": team_id})
        try:
            grant = await self._oauth.refresh(refresh_token)
        except SlackApiError as e:
            if e.error in INVALID_REFRESH_ERRORS:
                logger.error(
                    "refresh_token_rejected",
                    extra={"slack.team_id": team_id, "slack.error": e.error},
                )
                await self.delete(team_id)
                raise ReauthRequiredError(team_id, e.error) from e
            raise RefreshFailedError(team_id, f"Token refresh error: {e.error}") from e
        except (TransientTransportError, httpx.TransportError) as e:
            raise RefreshFailedError(team_id, f"Token refresh failed: {e}") from e

        existing = await self.get(team_id)
        await self.save(
            Credential(
                team_id=team_id,
                access_token=grant.access_token,
                # Slack may omit the refresh token when it is not rotated
                refresh_token=grant.refresh_token or refresh_token,
                expires_at=grant.expires_at(self._clock()),
                bot_token=grant.access_token,
                team_name=(existing.team_name if existing else None)
                or grant.team_name
                or "",
            )
        )
        logger.info("credential_refreshed", extra={"slack.team_id": team_id})
        return grant.access_token
