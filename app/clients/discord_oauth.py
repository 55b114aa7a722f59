"""
Discord OAuth utilities.

These helpers manage the user authorization flow and the token refresh
lifecycle against the Discord token endpoint.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from datetime import datetime
from hashlib import sha256
from typing import Any, Callable, Dict
from urllib.parse import urlencode

import httpx

from fastapi import HTTPException, status

from app.core.config import DiscordSettings, OAuthSettings
from app.models.credential import Credential, utcnow
from app.models.provisioning import FailureReason
from app.utils.http import build_async_client, json_body, response_detail, transport_detail

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


class TokenEndpointError(Exception):
    """Raised when the token endpoint rejects a grant or answers with garbage."""

    def __init__(self, reason: FailureReason, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class ExchangeError(TokenEndpointError):
    """Authorization-code exchange failed."""


class RefreshError(TokenEndpointError):
    """Refresh-token exchange failed."""


class DiscordOAuthClient:
    """Build Discord authorization URLs and talk to the token endpoint."""

    TOKEN_PATH = "/oauth2/token"

    def __init__(
        self,
        discord_settings: DiscordSettings,
        oauth_settings: OAuthSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        discord_settings.require_oauth_client()
        self._discord = discord_settings
        self._oauth = oauth_settings
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

    def build_authorization_url(self, state: str, prompt: str = "consent") -> str:
        """Construct the Discord OAuth consent URL."""
        params = {
            "client_id": self._discord.client_id,
            "redirect_uri": str(self._discord.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "prompt": prompt,
            "state": state,
        }
        return f"{self._discord.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> Credential:
        """Exchange a single-use authorization code for a credential."""
        if not code:
            raise ValueError("Authorization code must be a non-empty string.")

        obtained_at = self._clock()
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": str(self._discord.redirect_uri),
        }
        token_payload = await self._post_token(payload, error_cls=ExchangeError)

        try:
            credential = Credential.from_token_payload(token_payload, obtained_at=obtained_at)
        except ValueError as exc:
            raise ExchangeError(FailureReason.MALFORMED_RESPONSE, str(exc)) from exc
        if not credential.refresh_token:
            raise ExchangeError(
                FailureReason.MALFORMED_RESPONSE,
                "Token response did not include a refresh_token.",
            )
        logger.info(
            "Exchanged authorization code (scopes: %s)", " ".join(sorted(credential.scope))
        )
        return credential

    async def refresh(self, credential: Credential) -> Credential:
        """Mint a new credential from the refresh token of ``credential``."""
        if not credential.refresh_token:
            raise RefreshError(
                FailureReason.MISSING_REFRESH_TOKEN,
                "Stored credential has no refresh token.",
            )

        obtained_at = self._clock()
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
        }
        token_payload = await self._post_token(payload, error_cls=RefreshError)

        try:
            refreshed = Credential.from_token_payload(
                token_payload,
                obtained_at=obtained_at,
                fallback_refresh_token=credential.refresh_token,
            )
        except ValueError as exc:
            raise RefreshError(FailureReason.MALFORMED_RESPONSE, str(exc)) from exc
        logger.info(
            "Refreshed access token (refresh token rotated: %s)",
            refreshed.refresh_token != credential.refresh_token,
        )
        return refreshed

    async def _post_token(
        self, payload: Dict[str, str], *, error_cls: type[TokenEndpointError]
    ) -> Any:
        data = {
            **payload,
            "client_id": self._discord.client_id,
            "client_secret": self._discord.client_secret,
        }
        try:
            async with build_async_client(
                base_url=self._discord.api_base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.TOKEN_PATH,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Token endpoint call failed: %s", exc.__class__.__name__)
            raise error_cls(FailureReason.PROVIDER_REJECTED, transport_detail(exc)) from exc

        if not response.is_success:
            logger.warning(
                "Token endpoint rejected %s grant: HTTP %s",
                payload["grant_type"],
                response.status_code,
            )
            raise error_cls(FailureReason.PROVIDER_REJECTED, response_detail(response))

        try:
            return json_body(response)
        except ValueError as exc:
            raise error_cls(FailureReason.MALFORMED_RESPONSE, str(exc)) from exc


__all__ = [
    "DiscordOAuthClient",
    "ExchangeError",
    "OAuthStateEncoder",
    "RefreshError",
    "TokenEndpointError",
]
