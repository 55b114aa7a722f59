"""
Domain model for a subject's delegated OAuth grant.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credential(BaseModel):
    """Access/refresh token pair plus the metadata reported at issuance.

    Instances are frozen; a refresh yields a new ``Credential`` that replaces
    the stored one wholesale.
    """

    model_config = ConfigDict(frozen=True)

    token_type: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in_seconds: int = Field(..., ge=0)
    scope: frozenset[str] = Field(default_factory=frozenset)
    obtained_at: datetime

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in_seconds)

    @property
    def obtained_at_epoch(self) -> float:
        return self.obtained_at.timestamp()

    def is_stale(self, now: datetime | None = None) -> bool:
        """Return True once the validity window reported by the provider has elapsed."""
        current = now or utcnow()
        return current >= self.expires_at

    @classmethod
    def from_token_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        obtained_at: datetime,
        fallback_refresh_token: str | None = None,
    ) -> "Credential":
        """
        Build a credential from a token endpoint response body.

        Raises ``ValueError`` when required fields are missing or mistyped.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("Token response is not a JSON object.")

        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, str)):
            raise ValueError("Token response is missing a numeric expires_in.")

        raw_scope = payload.get("scope") or ""
        if not isinstance(raw_scope, str):
            raise ValueError("Token response scope must be a string.")

        try:
            return cls(
                token_type=payload.get("token_type"),
                access_token=payload.get("access_token"),
                refresh_token=payload.get("refresh_token") or fallback_refresh_token,
                expires_in_seconds=int(expires_in),
                scope=frozenset(raw_scope.split()),
                obtained_at=obtained_at,
            )
        except (ValidationError, TypeError) as exc:
            raise ValueError(f"Incomplete token payload: {exc}") from exc

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the dictionary shape persisted by the record stores."""
        return {
            "token_type": self.token_type,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in_seconds,
            "scope": sorted(self.scope),
            "obtained_at": self.obtained_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Credential":
        obtained_at = datetime.fromisoformat(record["obtained_at"])
        if obtained_at.tzinfo is None:
            obtained_at = obtained_at.replace(tzinfo=timezone.utc)
        return cls(
            token_type=record["token_type"],
            access_token=record["access_token"],
            refresh_token=record.get("refresh_token"),
            expires_in_seconds=int(record["expires_in"]),
            scope=frozenset(record.get("scope") or ()),
            obtained_at=obtained_at,
        )


__all__ = ["Credential", "utcnow"]
