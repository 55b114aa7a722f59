"""Expose constructed client wrappers."""

from .discord_guilds import DiscordGuildClient, GuildOperationError
from .discord_identity import DiscordIdentityClient, IdentityError
from .discord_oauth import (
    DiscordOAuthClient,
    ExchangeError,
    OAuthStateEncoder,
    RefreshError,
    TokenEndpointError,
)
from .dynamodb import DynamoDBStore
from .memory_store import MemoryStore
from .sqlite_store import SQLiteStore

__all__ = [
    "DiscordGuildClient",
    "DiscordIdentityClient",
    "DiscordOAuthClient",
    "DynamoDBStore",
    "ExchangeError",
    "GuildOperationError",
    "IdentityError",
    "MemoryStore",
    "OAuthStateEncoder",
    "RefreshError",
    "SQLiteStore",
    "TokenEndpointError",
]
