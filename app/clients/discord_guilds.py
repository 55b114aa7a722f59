"""
Guild administration calls made with the bot's service credential.
"""

from __future__ import annotations

import httpx

from app.core.config import DiscordSettings
from app.utils.http import build_async_client, response_detail, transport_detail


class GuildOperationError(Exception):
    """Raised when an administrative guild call is rejected or times out."""


class DiscordGuildClient:
    """Add members to a guild and grant them roles using the bot token."""

    def __init__(
        self,
        settings: DiscordSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings.require_bot_token()
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    async def add_member(self, *, guild_id: str, user_id: str, access_token: str) -> bool:
        """
        Join ``user_id`` to ``guild_id`` using the user's access token as proof.

        Returns True when the user was added and False when they were already a
        member (Discord answers 204 in that case).
        """
        response = await self._put(
            f"/guilds/{guild_id}/members/{user_id}",
            json={"access_token": access_token},
        )
        return response.status_code != httpx.codes.NO_CONTENT

    async def assign_role(self, *, guild_id: str, user_id: str, role_id: str) -> None:
        await self._put(f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}")

    async def _put(self, path: str, json: dict | None = None) -> httpx.Response:
        try:
            async with build_async_client(
                base_url=self._settings.api_base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Authorization": f"Bot {self._settings.bot_token}"},
            ) as client:
                response = await client.put(path, json=json)
        except httpx.HTTPError as exc:
            raise GuildOperationError(transport_detail(exc)) from exc

        if not response.is_success:
            raise GuildOperationError(response_detail(response))
        return response


__all__ = ["DiscordGuildClient", "GuildOperationError"]
