"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    DiscordGuildClient,
    DiscordIdentityClient,
    DiscordOAuthClient,
    DynamoDBStore,
    MemoryStore,
    OAuthStateEncoder,
    SQLiteStore,
)
from app.core.config import CredentialBackend, get_settings
from app.services import (
    CredentialLifecycleService,
    CredentialStore,
    ProvisioningService,
    ProvisioningTargetResolver,
    RecordStore,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Discord client secret."""
    settings = _settings()
    settings.discord.require_oauth_client()
    return OAuthStateEncoder(secret_key=settings.discord.client_secret)


@lru_cache()
def get_discord_oauth_client() -> DiscordOAuthClient:
    """Create a singleton Discord OAuth client."""
    settings = _settings()
    return DiscordOAuthClient(
        settings.discord,
        settings.oauth,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache()
def get_identity_client() -> DiscordIdentityClient:
    settings = _settings()
    return DiscordIdentityClient(settings.discord, timeout=settings.http_timeout_seconds)


@lru_cache()
def get_guild_client() -> DiscordGuildClient:
    """Provide the guild client authorized with the bot token."""
    settings = _settings()
    return DiscordGuildClient(settings.discord, timeout=settings.http_timeout_seconds)


@lru_cache()
def get_record_store() -> RecordStore:
    """Provide the record backend selected by ``CREDENTIAL_BACKEND``."""
    storage = _settings().storage
    if storage.backend is CredentialBackend.DYNAMODB:
        return DynamoDBStore(storage)
    if storage.backend is CredentialBackend.MEMORY:
        return MemoryStore()
    return SQLiteStore(storage.db_path)


@lru_cache()
def get_credential_store() -> CredentialStore:
    storage = _settings().storage
    return CredentialStore(
        get_record_store(),
        addressing=storage.addressing,
        single_key=storage.single_key,
    )


@lru_cache()
def get_target_resolver() -> ProvisioningTargetResolver:
    return ProvisioningTargetResolver(_settings().provisioning, get_record_store())


@lru_cache()
def get_provisioning_service() -> ProvisioningService:
    return ProvisioningService(get_guild_client())


@lru_cache()
def get_credential_lifecycle_service() -> CredentialLifecycleService:
    """Assemble the authorization and refresh flows."""
    return CredentialLifecycleService(
        oauth_client=get_discord_oauth_client(),
        identity_client=get_identity_client(),
        store=get_credential_store(),
        provisioning=get_provisioning_service(),
        targets=get_target_resolver(),
    )


__all__ = [
    "get_credential_lifecycle_service",
    "get_credential_store",
    "get_discord_oauth_client",
    "get_guild_client",
    "get_identity_client",
    "get_oauth_state_encoder",
    "get_provisioning_service",
    "get_record_store",
    "get_target_resolver",
]
