"""Schemas related to OAuth flows and provisioning results."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models import AuthorizationResult, Credential, RefreshResult


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., min_length=1, description="Authorization code returned by Discord.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class CredentialView(BaseModel):
    """Credential metadata safe to show on status pages; secrets are omitted."""

    key: str
    token_type: str
    scope: list[str]
    obtained_at: datetime
    expires_at: datetime
    expires_in_seconds: int
    stale: bool
    has_refresh_token: bool

    @classmethod
    def from_credential(cls, key: str, credential: Credential) -> "CredentialView":
        return cls(
            key=key,
            token_type=credential.token_type,
            scope=sorted(credential.scope),
            obtained_at=credential.obtained_at,
            expires_at=credential.expires_at,
            expires_in_seconds=credential.expires_in_seconds,
            stale=credential.is_stale(),
            has_refresh_token=bool(credential.refresh_token),
        )


class AuthorizationResponse(BaseModel):
    """Outcome of completing authorization or provisioning a stored credential."""

    status: str = Field(
        ...,
        description=(
            "One of fully_succeeded, joined_no_role, join_failed, joined_role_failed, "
            "exchange_error, refresh_error, identity_error, not_found."
        ),
    )
    reason: Optional[str] = None
    detail: Optional[str] = None
    subject_id: Optional[str] = None
    guild_id: Optional[str] = None
    role_id: Optional[str] = None
    already_member: bool = False
    redirect_to: Optional[str] = None

    @classmethod
    def from_result(
        cls, result: AuthorizationResult, redirect_to: str | None = None
    ) -> "AuthorizationResponse":
        outcome = result.provisioning
        failure = result.failure
        return cls(
            status=result.status,
            reason=failure.reason.value if failure else None,
            detail=failure.detail if failure else (outcome.detail if outcome else None),
            subject_id=result.subject_id,
            guild_id=outcome.guild_id if outcome else None,
            role_id=outcome.role_id if outcome else None,
            already_member=outcome.already_member if outcome else False,
            redirect_to=redirect_to,
        )


class RefreshResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    detail: Optional[str] = None
    credential: Optional[CredentialView] = None

    @classmethod
    def from_result(cls, result: RefreshResult) -> "RefreshResponse":
        failure = result.failure
        return cls(
            status=result.status,
            reason=failure.reason.value if failure else None,
            detail=failure.detail if failure else None,
            credential=(
                CredentialView.from_credential(result.key, result.credential)
                if result.credential
                else None
            ),
        )


__all__ = [
    "AuthorizationResponse",
    "CredentialView",
    "OAuthCallbackPayload",
    "RefreshResponse",
]
