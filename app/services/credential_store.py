"""
Persistence of credentials keyed by subject identity or a fixed sentinel.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from app.core.config import AddressingMode
from app.models.credential import Credential


class RecordStore(Protocol):
    def put_item(self, item: Dict[str, Any]) -> None: ...

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]: ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> None: ...


class CredentialStore:
    """Store one credential per key on top of a record backend.

    The addressing mode is fixed at construction. In ``single`` mode every
    lookup resolves to the same sentinel key; in ``per_subject`` mode the
    subject id is the key. Each ``put`` writes a complete record, so
    concurrent writers for one key resolve to last-writer-wins.
    """

    SORT_KEY = "oauth#discord"

    def __init__(
        self,
        records: RecordStore,
        *,
        addressing: AddressingMode = AddressingMode.PER_SUBJECT,
        single_key: str = "default",
    ) -> None:
        if addressing is AddressingMode.SINGLE and not single_key:
            raise ValueError("Single-key addressing requires a non-empty sentinel key.")
        self._records = records
        self._addressing = addressing
        self._single_key = single_key

    @property
    def addressing(self) -> AddressingMode:
        return self._addressing

    @property
    def keyed_by_subject(self) -> bool:
        return self._addressing is AddressingMode.PER_SUBJECT

    def resolve_key(self, subject_id: str | None) -> str:
        """Map a subject id (or nothing) onto the key used by this deployment."""
        if self._addressing is AddressingMode.SINGLE:
            return self._single_key
        if not subject_id:
            raise ValueError("A subject id is required with per-subject credential addressing.")
        return subject_id

    def put(self, key: str, credential: Credential) -> None:
        item = {
            "pk": self._partition_key(key),
            "sk": self.SORT_KEY,
            "key": key,
            **credential.to_record(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._records.put_item(item)

    def get(self, key: str) -> Credential | None:
        record = self._records.get_item(
            partition_key=self._partition_key(key), sort_key=self.SORT_KEY
        )
        if not record:
            return None
        return Credential.from_record(record)

    def delete(self, key: str) -> None:
        self._records.delete_item(partition_key=self._partition_key(key), sort_key=self.SORT_KEY)

    @staticmethod
    def _partition_key(key: str) -> str:
        return f"credential#{key}"


__all__ = ["CredentialStore", "RecordStore"]
