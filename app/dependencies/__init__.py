"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_lifecycle_service,
    get_credential_store,
    get_discord_oauth_client,
    get_guild_client,
    get_identity_client,
    get_oauth_state_encoder,
    get_provisioning_service,
    get_record_store,
    get_target_resolver,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
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
