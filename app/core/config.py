"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the operator scripts
share a consistent configuration surface.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class ConfigurationError(RuntimeError):
    """Raised when deployment secrets or identifiers required by a flow are missing."""


class CredentialBackend(str, Enum):
    SQLITE = "sqlite"
    DYNAMODB = "dynamodb"
    MEMORY = "memory"


class AddressingMode(str, Enum):
    """How credential records are keyed: one fixed key, or one per subject."""

    SINGLE = "single"
    PER_SUBJECT = "per_subject"


class DiscordSettings(BaseSettings):
    """Configuration required for interacting with the Discord API."""

    client_id: Optional[str] = Field(None, validation_alias="DISCORD_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="DISCORD_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(None, validation_alias="DISCORD_REDIRECT_URI")
    bot_token: Optional[str] = Field(
        None,
        validation_alias="DISCORD_BOT_TOKEN",
        description="Bot credential used for guild administration calls.",
    )
    api_base_url: str = Field(
        "https://discord.com/api/v10", validation_alias="DISCORD_API_BASE_URL"
    )
    authorize_url: str = Field(
        "https://discord.com/oauth2/authorize", validation_alias="DISCORD_AUTHORIZE_URL"
    )

    def require_oauth_client(self) -> None:
        """Raise ``ConfigurationError`` unless the OAuth client is fully configured."""
        missing = [
            name
            for name, value in (
                ("DISCORD_CLIENT_ID", self.client_id),
                ("DISCORD_CLIENT_SECRET", self.client_secret),
                ("DISCORD_REDIRECT_URI", self.redirect_uri),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing OAuth client configuration: {', '.join(missing)}"
            )

    def require_bot_token(self) -> None:
        if not self.bot_token:
            raise ConfigurationError("Missing service credential: DISCORD_BOT_TOKEN")


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("identify", "guilds.join"),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class ProvisioningSettings(BaseSettings):
    """Default guild and role used when adding authorized users."""

    default_guild_id: Optional[str] = Field(None, validation_alias="DEFAULT_GUILD_ID")
    role_id: Optional[str] = Field(
        None,
        validation_alias="DISCORD_ROLE_ID",
        description="Role granted after joining. Role assignment is skipped when unset.",
    )


class StorageSettings(BaseSettings):
    """Settings for the credential persistence backend."""

    backend: CredentialBackend = Field(
        CredentialBackend.SQLITE, validation_alias="CREDENTIAL_BACKEND"
    )
    addressing: AddressingMode = Field(
        AddressingMode.PER_SUBJECT, validation_alias="CREDENTIAL_ADDRESSING"
    )
    single_key: str = Field("default", validation_alias="CREDENTIAL_SINGLE_KEY")
    db_path: str = Field("data/credentials.db", validation_alias="CREDENTIAL_DB_PATH")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(None, validation_alias="DYNAMODB_TABLE_NAME")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    http_timeout_seconds: float = Field(10.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    provisioning: ProvisioningSettings = Field(default_factory=ProvisioningSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AddressingMode",
    "AppSettings",
    "ConfigurationError",
    "CredentialBackend",
    "DiscordSettings",
    "OAuthSettings",
    "ProvisioningSettings",
    "StorageSettings",
    "get_settings",
]
