"""Error taxonomy for Herald.

Every error carries a stable ``code`` (surfaced to HTTP clients), the HTTP
status it maps to, and whether the retry executor may retry it:

- ValidationError: malformed or missing input, never retried
- CredentialError: NoCredential / CredentialExpired / ReauthRequired, terminal
- RefreshFailedError: token endpoint unreachable or erroring, retryable
- TransientTransportError: network, timeout, 5xx or 429, retryable
- SlackApiError: Slack answered ``ok: false``, not retryable
- NotInChannelError: the bot is not a member of the target channel
"""

BOT_NOT_IN_CHANNEL_MESSAGE = (
    "Bot is not in the channel. For private channels, please add the bot "
    "manually using /invite @YourBotName in Slack."
)
PRIVATE_CHANNEL_WARNING = (
    "Remember, for private channels, please add the bot manually using "
    "/invite @YourBotName in Slack."
)


class HeraldError(Exception):
    """Base class for all Herald errors."""

    code: str = "unknown_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "error": self.code, "message": self.message}


class ValidationError(HeraldError):
    """Input failed validation."""

    code = "validation_error"
    status_code = 400


class CredentialError(HeraldError):
    """A workspace credential is unusable; re-authorization is required."""

    code = "credential_error"
    status_code = 401

    def __init__(self, team_id: str, message: str | None = None):
        super().__init__(message)
        self.team_id = team_id


class NoCredentialError(CredentialError):
    code = "no_credential"

    def __init__(self, team_id: str):
        super().__init__(team_id, f"No token found for team {team_id}")


class CredentialExpiredError(CredentialError):
    code = "credential_expired"

    def __init__(self, team_id: str):
        super().__init__(
            team_id, f"Token for team {team_id} expired and no refresh token is available"
        )


class ReauthRequiredError(CredentialError):
    code = "reauth_required"

    def __init__(self, team_id: str, reason: str | None = None):
        detail = f" ({reason})" if reason else ""
        super().__init__(
            team_id, f"Refresh token for team {team_id} was rejected{detail}; re-authorize"
        )
        self.reason = reason


class RefreshFailedError(HeraldError):
    """Token refresh failed for a reason other than a rejected refresh token."""

    code = "refresh_failed"
    status_code = 502
    retryable = True

    def __init__(self, team_id: str, message: str):
        super().__init__(message)
        self.team_id = team_id


class TransientTransportError(HeraldError):
    """Network failure, timeout, 5xx or rate limiting from the Slack API."""

    code = "transport_error"
    status_code = 502
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.http_status = status_code
        self.retry_after = retry_after

    @property
    def is_rate_limited(self) -> bool:
        return self.http_status == 429


class SlackApiError(HeraldError):
    """Slack answered with ``ok: false``."""

    code = "slack_api_error"
    status_code = 502

    def __init__(self, method: str, error: str, message: str | None = None):
        super().__init__(message or f"Slack {method} failed: {error}")
        self.method = method
        self.error = error

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "error": self.error, "message": self.message}


class NotInChannelError(SlackApiError):
    """The bot cannot post because it is not a member of the channel."""

    code = "not_in_channel"
    status_code = 400

    def __init__(self, channel_id: str):
        super().__init__("chat.postMessage", "not_in_channel", BOT_NOT_IN_CHANNEL_MESSAGE)
        self.channel_id = channel_id
        self.remediation = PRIVATE_CHANNEL_WARNING
