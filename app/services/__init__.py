"""Service layer exports."""

from .credential_lifecycle import CredentialLifecycleService
from .credential_store import CredentialStore, RecordStore
from .provisioning import ProvisioningService
from .provisioning_targets import ProvisioningTargetResolver

__all__ = [
    "CredentialLifecycleService",
    "CredentialStore",
    "ProvisioningService",
    "ProvisioningTargetResolver",
    "RecordStore",
]
