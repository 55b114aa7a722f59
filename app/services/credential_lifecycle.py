"""
Authorization completion and credential refresh flows.

Each entry point returns exactly one terminal result. Provider failures are
caught where they happen and reported as ``FlowFailure`` values; only
``ConfigurationError`` escapes, because a misconfigured deployment must stop
the flow rather than be reported as a rejected grant.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from app.clients.discord_identity import DiscordIdentityClient, IdentityError
from app.clients.discord_oauth import DiscordOAuthClient, ExchangeError, RefreshError
from app.models.credential import Credential, utcnow
from app.models.provisioning import (
    AuthorizationResult,
    FailureKind,
    FailureReason,
    FlowFailure,
    RefreshResult,
)
from app.services.credential_store import CredentialStore
from app.services.provisioning import ProvisioningService
from app.services.provisioning_targets import ProvisioningTargetResolver

logger = logging.getLogger(__name__)


def _not_found(key: str) -> FlowFailure:
    return FlowFailure(
        kind=FailureKind.NOT_FOUND,
        reason=FailureReason.NO_CREDENTIAL,
        detail=f"No credential stored for key {key!r}.",
    )


class CredentialLifecycleService:
    """Wire token exchange, storage, identity and provisioning into user-facing flows."""

    def __init__(
        self,
        *,
        oauth_client: DiscordOAuthClient,
        identity_client: DiscordIdentityClient,
        store: CredentialStore,
        provisioning: ProvisioningService,
        targets: ProvisioningTargetResolver,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._oauth = oauth_client
        self._identity = identity_client
        self._store = store
        self._provisioning = provisioning
        self._targets = targets
        self._clock = clock

    async def complete_authorization(
        self, code: str, *, guild_id: str | None = None
    ) -> AuthorizationResult:
        """Exchange ``code``, persist the credential, then join the user to the guild."""
        target = self._targets.resolve(guild_id)

        try:
            credential = await self._oauth.exchange_authorization_code(code)
        except ExchangeError as exc:
            logger.warning("Authorization code exchange failed (%s)", exc.reason.value)
            return AuthorizationResult(
                failure=FlowFailure(FailureKind.EXCHANGE, exc.reason, exc.detail)
            )

        # Per-subject keys are only known after identity resolution.
        if not self._store.keyed_by_subject:
            self._store.put(self._store.resolve_key(None), credential)

        try:
            subject_id = await self._identity.resolve_subject(credential.access_token)
        except IdentityError as exc:
            logger.error("Could not resolve the authorized user: %s", exc)
            return AuthorizationResult(
                credential=credential,
                failure=FlowFailure(FailureKind.IDENTITY, exc.reason, exc.detail),
            )

        if self._store.keyed_by_subject:
            self._store.put(self._store.resolve_key(subject_id), credential)

        outcome = await self._provisioning.provision(subject_id, credential, target)
        return AuthorizationResult(
            credential=credential, subject_id=subject_id, provisioning=outcome
        )

    async def refresh_credential(self, key: str | None = None) -> RefreshResult:
        """Replace the stored credential for ``key`` with a freshly minted one."""
        store_key = self._store.resolve_key(key)
        credential = self._store.get(store_key)
        if credential is None:
            return RefreshResult(key=store_key, failure=_not_found(store_key))

        try:
            refreshed = await self._oauth.refresh(credential)
        except RefreshError as exc:
            logger.warning("Refresh for %s failed (%s)", store_key, exc.reason.value)
            return RefreshResult(
                key=store_key,
                failure=FlowFailure(FailureKind.REFRESH, exc.reason, exc.detail),
            )

        self._store.put(store_key, refreshed)
        logger.info("Stored refreshed credential for %s", store_key)
        return RefreshResult(key=store_key, credential=refreshed)

    def credential_key(self, key: str | None = None) -> str:
        return self._store.resolve_key(key)

    def get_credential(self, key: str | None = None) -> Credential | None:
        return self._store.get(self._store.resolve_key(key))

    async def provision_stored(
        self, key: str | None = None, *, guild_id: str | None = None
    ) -> AuthorizationResult:
        """Join the guild using a previously stored credential, refreshing it if stale."""
        target = self._targets.resolve(guild_id)
        store_key = self._store.resolve_key(key)
        credential = self._store.get(store_key)
        if credential is None:
            return AuthorizationResult(failure=_not_found(store_key))

        if credential.is_stale(self._clock()):
            refresh = await self.refresh_credential(key)
            if not refresh.ok:
                return AuthorizationResult(credential=credential, failure=refresh.failure)
            credential = refresh.credential

        try:
            subject_id = await self._identity.resolve_subject(credential.access_token)
        except IdentityError as exc:
            logger.error("Stored credential %s no longer resolves to a user: %s", store_key, exc)
            return AuthorizationResult(
                credential=credential,
                failure=FlowFailure(FailureKind.IDENTITY, exc.reason, exc.detail),
            )

        if self._store.keyed_by_subject and subject_id != store_key:
            logger.warning(
                "Credential stored under %s belongs to user %s", store_key, subject_id
            )

        outcome = await self._provisioning.provision(subject_id, credential, target)
        return AuthorizationResult(
            credential=credential, subject_id=subject_id, provisioning=outcome
        )


__all__ = ["CredentialLifecycleService"]
