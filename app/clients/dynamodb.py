"""
Utility wrapper for storing credential and guild settings records in DynamoDB.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3

from app.core.config import ConfigurationError, StorageSettings


class DynamoDBStore:
    """Record operations against a table keyed by ``pk`` and ``sk``."""

    def __init__(self, settings: StorageSettings, resource: Any | None = None) -> None:
        if not settings.dynamodb_table_name:
            raise ConfigurationError(
                "DYNAMODB_TABLE_NAME must be set when CREDENTIAL_BACKEND=dynamodb"
            )
        self._settings = settings
        self._resource = resource or boto3.resource(
            "dynamodb", region_name=settings.region_name
        )
        self._table = self._resource.Table(settings.dynamodb_table_name)

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table, replacing any previous version."""
        self._table.put_item(Item=item)

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        """Retrieve an item using its key."""
        response = self._table.get_item(
            Key={"pk": partition_key, "sk": sort_key},
            ConsistentRead=True,
        )
        return response.get("Item")

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        self._table.delete_item(Key={"pk": partition_key, "sk": sort_key})


__all__ = ["DynamoDBStore"]
