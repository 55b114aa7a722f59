"""Process-local record store for single-process deployments and tests."""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, Optional, Tuple


class MemoryStore:
    """Dictionary-backed store mirroring the ``SQLiteStore`` interface."""

    def __init__(self) -> None:
        self._items: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")
        snapshot = copy.deepcopy(item)
        with self._lock:
            self._items[(pk, sk)] = snapshot

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._items.get((partition_key, sort_key))
        return copy.deepcopy(item) if item is not None else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        with self._lock:
            self._items.pop((partition_key, sort_key), None)


__all__ = ["MemoryStore"]
