"""Resolve which guild and role an authorized user is provisioned into."""

from __future__ import annotations

from datetime import datetime, timezone

from app.core.config import ConfigurationError, ProvisioningSettings
from app.models.provisioning import ProvisioningTarget
from app.services.credential_store import RecordStore


class ProvisioningTargetResolver:
    """Combine deployment defaults with per-guild settings records."""

    SORT_KEY = "settings#provisioning"

    def __init__(self, settings: ProvisioningSettings, records: RecordStore) -> None:
        self._settings = settings
        self._records = records

    def resolve(self, guild_id: str | None = None) -> ProvisioningTarget:
        target_guild = guild_id or self._settings.default_guild_id
        if not target_guild:
            raise ConfigurationError(
                "No guild requested and DEFAULT_GUILD_ID is not configured."
            )

        record = self._records.get_item(
            partition_key=f"guild#{target_guild}", sort_key=self.SORT_KEY
        )
        if record is not None:
            role_id = record.get("role_id") or None
        else:
            role_id = self._settings.role_id
        return ProvisioningTarget(guild_id=target_guild, role_id=role_id)

    def save(self, guild_id: str, role_id: str | None) -> ProvisioningTarget:
        """Persist the role granted for ``guild_id``; ``None`` disables role assignment."""
        self._records.put_item(
            {
                "pk": f"guild#{guild_id}",
                "sk": self.SORT_KEY,
                "guild_id": guild_id,
                "role_id": role_id,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        return ProvisioningTarget(guild_id=guild_id, role_id=role_id)


__all__ = ["ProvisioningTargetResolver"]
