"""Component wiring shared by the server and the CLI."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx

from herald.auth import CredentialStore, SlackOAuthClient
from herald.config import HeraldConfig
from herald.db import Database, utc_now
from herald.retry import API_CALL_POLICY, RetryPolicy
from herald.scheduling import DeliveryScheduler, ScheduledMessageStore, SchedulingService
from herald.slack import MessageTransport, SlackClient

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything a running Herald instance needs, constructed once."""

    config: HeraldConfig
    database: Database
    slack: SlackClient
    oauth: SlackOAuthClient
    credentials: CredentialStore
    transport: MessageTransport
    messages: ScheduledMessageStore
    scheduler: DeliveryScheduler
    service: SchedulingService

    async def connect(self) -> None:
        """Open the database and create any missing tables."""
        if not self.database.is_connected:
            await self.database.connect()
        await self.database.create_tables()

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.slack.aclose()
        await self.database.disconnect()


def api_policy_from_config(config: HeraldConfig) -> RetryPolicy:
    retry = config.retry
    return API_CALL_POLICY.with_overrides(
        max_attempts=retry.max_attempts,
        base_delay=retry.base_delay,
        max_delay=retry.max_delay,
        multiplier=retry.multiplier,
        max_retry_after=retry.max_retry_after,
    )


def build_components(
    config: HeraldConfig,
    database: Database | None = None,
    http: httpx.AsyncClient | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Components:
    """Construct and wire all components from configuration.

    Args:
        config: Loaded configuration.
        database: Use this database instead of the configured one.
        http: HTTP client for Slack calls (tests inject a mock transport).
        clock: Time source for expiry checks and due-message queries.
    """
    if database is None:
        database = Database.from_config(config.database)

    slack_config = config.slack
    slack = SlackClient(
        http=http,
        base_url=slack_config.api_base_url,
        timeout=slack_config.timeout,
    )
    oauth = SlackOAuthClient(
        slack,
        client_id=slack_config.client_id,
        client_secret=(
            slack_config.client_secret.get_secret_value()
            if slack_config.client_secret
            else None
        ),
        redirect_uri=slack_config.redirect_uri,
        scope=slack_config.scope,
        authorize_url=slack_config.authorize_url,
    )
    credentials = CredentialStore(database, oauth, clock=clock)
    transport = MessageTransport(credentials, slack, policy=api_policy_from_config(config))
    messages = ScheduledMessageStore(database, clock=clock)
    scheduler = DeliveryScheduler(
        messages,
        transport,
        interval=config.scheduler.interval_seconds,
        message_delay=config.scheduler.message_delay_seconds,
    )
    service = SchedulingService(messages, scheduler, transport, credentials, clock=clock)

    logger.debug("components_built", extra={"db.url": database.url})
    return Components(
        config=config,
        database=database,
        slack=slack,
        oauth=oauth,
        credentials=credentials,
        transport=transport,
        messages=messages,
        scheduler=scheduler,
        service=service,
    )
