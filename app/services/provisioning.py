"""
Drive the join-guild-then-assign-role sequence for an authorized user.
"""

from __future__ import annotations

import logging

from app.clients.discord_guilds import DiscordGuildClient, GuildOperationError
from app.core.config import ConfigurationError
from app.models.credential import Credential
from app.models.provisioning import (
    ProvisioningOutcome,
    ProvisioningStatus,
    ProvisioningTarget,
)

logger = logging.getLogger(__name__)


class ProvisioningService:
    """Add a subject to a guild and grant the configured role.

    Guild calls are authorized with the bot's service credential held by
    ``DiscordGuildClient``; the user's access token is only sent as the join
    proof. Steps are not rolled back: a successful join stays in place even
    when the role grant fails afterwards.
    """

    def __init__(self, guild_client: DiscordGuildClient) -> None:
        self._guilds = guild_client

    async def provision(
        self,
        subject_id: str,
        credential: Credential,
        target: ProvisioningTarget,
    ) -> ProvisioningOutcome:
        if not target.guild_id:
            raise ConfigurationError("Provisioning target has no guild id.")
        guild_id = target.guild_id

        try:
            added = await self._guilds.add_member(
                guild_id=guild_id,
                user_id=subject_id,
                access_token=credential.access_token,
            )
        except GuildOperationError as exc:
            logger.warning("Join of user %s to guild %s failed: %s", subject_id, guild_id, exc)
            return ProvisioningOutcome(
                status=ProvisioningStatus.JOIN_FAILED,
                subject_id=subject_id,
                guild_id=guild_id,
                role_id=target.role_id,
                detail=str(exc),
            )

        already_member = not added
        if not target.role_id:
            logger.info("User %s joined guild %s (no role configured)", subject_id, guild_id)
            return ProvisioningOutcome(
                status=ProvisioningStatus.JOINED_NO_ROLE,
                subject_id=subject_id,
                guild_id=guild_id,
                already_member=already_member,
            )

        try:
            await self._guilds.assign_role(
                guild_id=guild_id, user_id=subject_id, role_id=target.role_id
            )
        except GuildOperationError as exc:
            logger.warning(
                "User %s joined guild %s but role %s was not granted: %s",
                subject_id,
                guild_id,
                target.role_id,
                exc,
            )
            return ProvisioningOutcome(
                status=ProvisioningStatus.JOINED_ROLE_FAILED,
                subject_id=subject_id,
                guild_id=guild_id,
                role_id=target.role_id,
                detail=str(exc),
                already_member=already_member,
            )

        logger.info(
            "User %s joined guild %s with role %s", subject_id, guild_id, target.role_id
        )
        return ProvisioningOutcome(
            status=ProvisioningStatus.FULLY_SUCCEEDED,
            subject_id=subject_id,
            guild_id=guild_id,
            role_id=target.role_id,
            already_member=already_member,
        )


__all__ = ["ProvisioningService"]
