"""Domain model exports."""

from .credential import Credential
from .provisioning import (
    AuthorizationResult,
    FailureKind,
    FailureReason,
    FlowFailure,
    ProvisioningOutcome,
    ProvisioningStatus,
    ProvisioningTarget,
    RefreshResult,
)

__all__ = [
    "AuthorizationResult",
    "Credential",
    "FailureKind",
    "FailureReason",
    "FlowFailure",
    "ProvisioningOutcome",
    "ProvisioningStatus",
    "ProvisioningTarget",
    "RefreshResult",
]
