"""Slack Web API access: client, validation and message transport."""

from herald.slack.client import SlackClient
from herald.slack.transport import Channel, JoinResult, MessageTransport, PostedMessage

__all__ = [
    "Channel",
    "JoinResult",
    "MessageTransport",
    "PostedMessage",
    "SlackClient",
]
