"""Input validation for Slack identifiers, message bodies and send times."""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from herald.errors import ValidationError

MAX_MESSAGE_LENGTH = 4000
MAX_CHANNEL_NAME_LENGTH = 100
MAX_SCHEDULE_HORIZON = timedelta(days=365)

TEAM_ID_PATTERN = re.compile(r"^T[A-Z0-9]{8,}$")
# Public (C), private/group (G) and direct message (D) conversations
CHANNEL_ID_PATTERN = re.compile(r"^[CGD][A-Z0-9]{8,}$")

UNSAFE_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
]


@dataclass(frozen=True)
class ScheduleRequest:
    """A validated schedule request, ready to persist."""

    team_id: str
    channel_id: str
    channel_name: str
    message: str
    scheduled_time: datetime


def is_valid_team_id(team_id: str | None) -> bool:
    return bool(team_id) and TEAM_ID_PATTERN.match(team_id) is not None


def is_valid_channel_id(channel_id: str | None) -> bool:
    return bool(channel_id) and CHANNEL_ID_PATTERN.match(channel_id) is not None


def validate_team_id(team_id: str | None) -> str:
    if not team_id:
        raise ValidationError("Team ID is required")
    if not is_valid_team_id(team_id):
        raise ValidationError("Invalid team ID format")
    return team_id


def validate_channel_id(channel_id: str | None) -> str:
    if not channel_id:
        raise ValidationError("Channel ID is required")
    if not is_valid_channel_id(channel_id):
        raise ValidationError("Invalid channel ID format")
    return channel_id


def validate_message_content(message: str | None) -> str:
    """Reject empty, oversized or unsafe message bodies."""
    if not message or not message.strip():
        raise ValidationError("Message cannot be empty")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters"
        )
    for pattern in UNSAFE_PATTERNS:
        if pattern.search(message):
            raise ValidationError("Message contains potentially unsafe content")
    return message


def sanitize_message(message: str) -> str:
    """Strip angle brackets and surrounding whitespace."""
    return message.replace("<", "").replace(">", "").strip()


def validate_and_sanitize_message(message: str | None) -> str:
    return sanitize_message(validate_message_content(message))


def parse_scheduled_time(value: str | int | float | datetime | None) -> datetime:
    """Parse an ISO-8601 string, epoch milliseconds or datetime into aware UTC.

    Naive datetimes (and ISO strings without an offset) are taken as UTC.
    """
    if value is None or value == "":
        raise ValidationError("Scheduled time is required")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        raise ValidationError("Invalid date format")
    elif isinstance(value, int | float):
        try:
            parsed = datetime.fromtimestamp(value / 1000, UTC)
        except (OverflowError, OSError, ValueError) as e:
            raise ValidationError("Invalid date format") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError("Invalid date format") from e
    else:
        raise ValidationError("Invalid date format")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def validate_scheduled_time(
    value: str | int | float | datetime | None, now: datetime | None = None
) -> datetime:
    """Parse and require a time strictly in the future, at most a year ahead."""
    scheduled = parse_scheduled_time(value)
    now = now or datetime.now(UTC)
    if scheduled <= now:
        raise ValidationError("Scheduled time must be in the future")
    if scheduled > now + MAX_SCHEDULE_HORIZON:
        raise ValidationError("Scheduled time cannot be more than 1 year in the future")
    return scheduled


def validate_schedule_request(
    team_id: str | None,
    channel_id: str | None,
    channel_name: str | None,
    message: str | None,
    scheduled_time: str | int | float | datetime | None,
    now: datetime | None = None,
) -> ScheduleRequest:
    """Validate every field of a schedule request.

    Raises:
        ValidationError: On the first failing field.
    """
    if not team_id or not channel_id or not channel_name or not message:
        raise ValidationError("Missing required fields")
    if scheduled_time is None or scheduled_time == "":
        raise ValidationError("Missing required fields")
    if len(channel_name) > MAX_CHANNEL_NAME_LENGTH:
        raise ValidationError(
            f"Channel name cannot exceed {MAX_CHANNEL_NAME_LENGTH} characters"
        )
    return ScheduleRequest(
        team_id=validate_team_id(team_id),
        channel_id=validate_channel_id(channel_id),
        channel_name=channel_name,
        message=validate_message_content(message),
        scheduled_time=validate_scheduled_time(scheduled_time, now=now),
    )
