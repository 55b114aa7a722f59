"""
Resolve the Discord user behind an access token.
"""

from __future__ import annotations

import logging

import httpx

from app.core.config import DiscordSettings
from app.models.provisioning import FailureReason
from app.utils.http import build_async_client, json_body, response_detail, transport_detail

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised when the authenticated subject cannot be determined."""

    def __init__(
        self, detail: str, reason: FailureReason = FailureReason.PROVIDER_REJECTED
    ) -> None:
        self.detail = detail
        self.reason = reason
        super().__init__(detail)


class DiscordIdentityClient:
    """Call ``/users/@me`` with a user's bearer token."""

    CURRENT_USER_PATH = "/users/@me"

    def __init__(
        self,
        settings: DiscordSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    async def resolve_subject(self, access_token: str) -> str:
        """Return the stable Discord user id for ``access_token``."""
        try:
            async with build_async_client(
                base_url=self._settings.api_base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    self.CURRENT_USER_PATH,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise IdentityError(transport_detail(exc)) from exc

        if not response.is_success:
            raise IdentityError(response_detail(response))

        try:
            user = json_body(response)
        except ValueError as exc:
            raise IdentityError(str(exc), FailureReason.MALFORMED_RESPONSE) from exc

        subject_id = user.get("id") if isinstance(user, dict) else None
        if not subject_id:
            raise IdentityError(
                "Current user response did not include an id.",
                FailureReason.MALFORMED_RESPONSE,
            )

        logger.debug("Resolved access token to user %s", subject_id)
        return str(subject_id)


__all__ = ["DiscordIdentityClient", "IdentityError"]
