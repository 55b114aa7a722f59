"""
Outcome types for the authorization, refresh and provisioning flows.

Every flow ends in exactly one of these values; provider failures are carried
as data rather than raised past the orchestrators.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.models.credential import Credential


@dataclass(frozen=True, slots=True)
class ProvisioningTarget:
    """Guild to join and, optionally, the role granted once joined."""

    guild_id: Optional[str] = None
    role_id: Optional[str] = None


class ProvisioningStatus(str, Enum):
    FULLY_SUCCEEDED = "fully_succeeded"
    JOINED_NO_ROLE = "joined_no_role"
    JOIN_FAILED = "join_failed"
    JOINED_ROLE_FAILED = "joined_role_failed"


@dataclass(frozen=True, slots=True)
class ProvisioningOutcome:
    """Result of the join-then-assign-role sequence for one subject."""

    status: ProvisioningStatus
    subject_id: str
    guild_id: str
    role_id: Optional[str] = None
    detail: Optional[str] = None
    already_member: bool = False

    @property
    def joined(self) -> bool:
        return self.status is not ProvisioningStatus.JOIN_FAILED

    @property
    def ok(self) -> bool:
        return self.status in (
            ProvisioningStatus.FULLY_SUCCEEDED,
            ProvisioningStatus.JOINED_NO_ROLE,
        )


class FailureKind(str, Enum):
    EXCHANGE = "exchange_error"
    REFRESH = "refresh_error"
    IDENTITY = "identity_error"
    NOT_FOUND = "not_found"


class FailureReason(str, Enum):
    PROVIDER_REJECTED = "provider-rejected"
    MALFORMED_RESPONSE = "malformed-response"
    MISSING_REFRESH_TOKEN = "missing-refresh-token"
    NO_CREDENTIAL = "no-credential"


@dataclass(frozen=True, slots=True)
class FlowFailure:
    kind: FailureKind
    reason: FailureReason
    detail: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AuthorizationResult:
    """Terminal outcome of completing an authorization or re-provisioning a stored grant."""

    credential: Optional[Credential] = None
    subject_id: Optional[str] = None
    provisioning: Optional[ProvisioningOutcome] = None
    failure: Optional[FlowFailure] = None

    @property
    def status(self) -> str:
        if self.failure is not None:
            return self.failure.kind.value
        if self.provisioning is None:
            raise ValueError("AuthorizationResult carries neither a failure nor an outcome.")
        return self.provisioning.status.value

    @property
    def ok(self) -> bool:
        return self.failure is None and self.provisioning is not None and self.provisioning.ok


@dataclass(frozen=True, slots=True)
class RefreshResult:
    key: str
    credential: Optional[Credential] = None
    failure: Optional[FlowFailure] = None

    @property
    def status(self) -> str:
        return self.failure.kind.value if self.failure else "refreshed"

    @property
    def ok(self) -> bool:
        return self.failure is None


__all__ = [
    "AuthorizationResult",
    "FailureKind",
    "FailureReason",
    "FlowFailure",
    "ProvisioningOutcome",
    "ProvisioningStatus",
    "ProvisioningTarget",
    "RefreshResult",
]
