"""Configuration models using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator

from herald.config.paths import get_database_path

SLACK_AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize"
DEFAULT_SLACK_SCOPE = "channels:read,chat:write,groups:read,channels:join"


class ConfigError(Exception):
    """Configuration error."""

    pass


class SlackConfig(BaseModel):
    """Slack app credentials and API endpoint settings."""

    client_id: str | None = None
    client_secret: SecretStr | None = None
    redirect_uri: str | None = None
    scope: str = DEFAULT_SLACK_SCOPE
    authorize_url: str = SLACK_AUTHORIZE_URL
    api_base_url: str = "https://slack.com/api/"
    timeout: float = 10.0

    @field_validator("api_base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    def validate_oauth(self) -> None:
        """Raise ConfigError if the OAuth settings needed for the flow are missing."""
        missing = [
            name
            for name, value in (
                ("client_id", self.client_id),
                ("client_secret", self.client_secret),
                ("redirect_uri", self.redirect_uri),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                f"Missing required Slack settings: {', '.join(missing)}"
            )


class ServerConfig(BaseModel):
    """Configuration for HTTP server."""

    host: str = "127.0.0.1"
    port: int = 5000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class DatabaseConfig(BaseModel):
    """Database location. ``url`` takes precedence over ``path``."""

    url: str | None = None
    path: Path = Field(default_factory=get_database_path)


class SchedulerConfig(BaseModel):
    """Delivery scheduler timing."""

    enabled: bool = True
    interval_seconds: float = 60.0
    # Courtesy pause between messages within one cycle
    message_delay_seconds: float = 0.1


class RetryConfig(BaseModel):
    """Retry settings for Slack API calls."""

    max_attempts: int = Field(default=4, ge=1)
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    max_retry_after: float = 60.0


class HeraldConfig(BaseModel):
    """Root configuration model."""

    slack: SlackConfig = Field(default_factory=SlackConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
