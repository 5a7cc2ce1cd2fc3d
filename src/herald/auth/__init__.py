"""Slack OAuth and per-workspace credential storage."""

from herald.auth.oauth import SlackOAuthClient, TokenGrant
from herald.auth.store import Credential, CredentialStore

__all__ = [
    "Credential",
    "CredentialStore",
    "SlackOAuthClient",
    "TokenGrant",
]
