from __future__ import annotations

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env once at module import so every BaseSettings subclass sees its vars
load_dotenv()


class DiscordSettings(BaseSettings):
    """Discord bot and guild settings. Env vars prefixed with DISCORD_."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_")

    bot_token: str  # required
    guild_id: int
    forum_channel_id: int
    member_role_id: int
    maintainer_role_id: int
    command_prefixes: str = ".,!"  # comma-separated

    @field_validator("bot_token")
    @classmethod
    def _validate_bot_token(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("DISCORD_BOT_TOKEN must not be empty")
        return v.strip()

    def prefixes(self) -> list[str]:
        return [p.strip() for p in self.command_prefixes.split(",") if p.strip()]


class ForumTagSettings(BaseSettings):
    """Forum tag ids for each pull request state. Env vars prefixed with FORUM_TAG_."""

    model_config = SettingsConfigDict(env_prefix="FORUM_TAG_")

    draft: int
    review_needed: int
    approved: int
    merged: int
    closed: int


class GitHubSettings(BaseSettings):
    """GitHub repository and API settings. Env vars prefixed with GITHUB_."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_")

    token: str
    repo_owner: str
    repo_name: str
    api_url: str = "https://api.github.com"

    @field_validator("token", "repo_owner", "repo_name")
    @classmethod
    def _validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("GitHub token, owner and repository name must not be empty")
        return v.strip()


class WebhookSettings(BaseSettings):
    """Webhook listener settings. Env vars prefixed with WEBHOOK_."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_")

    secret: str
    host: str = "0.0.0.0"
    port: int = 8080

    @field_validator("secret")
    @classmethod
    def _validate_secret(cls, v: str) -> str:
        if not v:
            raise ValueError("WEBHOOK_SECRET must not be empty")
        return v


class QueueSettings(BaseSettings):
    """Event queue and projector supervision settings. Env vars prefixed with QUEUE_."""

    model_config = SettingsConfigDict(env_prefix="QUEUE_")

    capacity: int = Field(16, gt=0, le=1024)
    restart_delay_s: float = Field(0.1, ge=0)
    drain_timeout_s: float = Field(5.0, ge=0)


class LoggingSettings(BaseSettings):
    """Log output settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    json_output: bool = Field(False, validation_alias="LOG_JSON")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in allowed:
            msg = f"LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    tags: ForumTagSettings = Field(default_factory=ForumTagSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on missing required fields."""
    return Settings()
