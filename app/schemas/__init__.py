"""Public schema exports."""

from .auth import (
    AuthorizationResponse,
    CredentialView,
    OAuthCallbackPayload,
    RefreshResponse,
)

__all__ = [
    "AuthorizationResponse",
    "CredentialView",
    "OAuthCallbackPayload",
    "RefreshResponse",
]
