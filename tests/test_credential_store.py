try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from app.clients.dynamodb import DynamoDBStore
from app.clients.memory_store import MemoryStore
from app.clients.sqlite_store import SQLiteStore
from app.core.config import (
    AddressingMode,
    ConfigurationError,
    ProvisioningSettings,
    StorageSettings,
)
from app.models import Credential
from app.services.credential_store import CredentialStore
from app.services.provisioning_targets import ProvisioningTargetResolver


def _credential(access_token: str = "access", offset_seconds: int = 0) -> Credential:
    return Credential(
        token_type="Bearer",
        access_token=access_token,
        refresh_token=f"refresh-{access_token}",
        expires_in_seconds=604800,
        scope=frozenset({"identify", "guilds.join"}),
        obtained_at=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=offset_seconds),
    )


class FakeTable:
    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict] = {}

    def put_item(self, Item: dict) -> None:
        self.items[(Item["pk"], Item["sk"])] = dict(Item)

    def get_item(self, Key: dict, ConsistentRead: bool = False) -> dict:
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item else {}

    def delete_item(self, Key: dict) -> None:
        self.items.pop((Key["pk"], Key["sk"]), None)


class FakeDynamoResource:
    def __init__(self) -> None:
        self.tables: dict[str, FakeTable] = {}

    def Table(self, name: str) -> FakeTable:
        return self.tables.setdefault(name, FakeTable())


def test_sqlite_store_replaces_whole_credential(tmp_path) -> None:
    store = CredentialStore(SQLiteStore(str(tmp_path / "nested" / "credentials.db")))

    store.put("user-1", _credential("first"))
    store.put("user-1", _credential("second", offset_seconds=60))

    loaded = store.get("user-1")
    assert loaded == _credential("second", offset_seconds=60)
    assert store.get("user-2") is None


def test_sqlite_store_survives_reopen(tmp_path) -> None:
    db_path = str(tmp_path / "credentials.db")
    CredentialStore(SQLiteStore(db_path)).put("user-1", _credential())

    reopened = CredentialStore(SQLiteStore(db_path))

    assert reopened.get("user-1") == _credential()


def test_single_key_addressing_ignores_subject() -> None:
    store = CredentialStore(
        MemoryStore(), addressing=AddressingMode.SINGLE, single_key="bot-owner"
    )

    assert store.resolve_key(None) == "bot-owner"
    assert store.resolve_key("someone") == "bot-owner"
    assert not store.keyed_by_subject


def test_per_subject_addressing_requires_subject() -> None:
    store = CredentialStore(MemoryStore(), addressing=AddressingMode.PER_SUBJECT)

    assert store.resolve_key("user-9") == "user-9"
    with pytest.raises(ValueError):
        store.resolve_key(None)


def test_memory_store_returns_copies() -> None:
    records = MemoryStore()
    item = {"pk": "credential#a", "sk": "oauth#discord", "scope": ["identify"]}
    records.put_item(item)

    item["scope"].append("guilds.join")
    loaded = records.get_item(partition_key="credential#a", sort_key="oauth#discord")

    assert loaded["scope"] == ["identify"]


def test_delete_removes_credential() -> None:
    store = CredentialStore(MemoryStore())
    store.put("user-1", _credential())

    store.delete("user-1")

    assert store.get("user-1") is None


def test_dynamodb_store_round_trips_credentials() -> None:
    resource = FakeDynamoResource()
    settings = StorageSettings(DYNAMODB_TABLE_NAME="credentials")
    store = CredentialStore(DynamoDBStore(settings, resource=resource))

    store.put("user-1", _credential())

    table = resource.tables["credentials"]
    assert ("credential#user-1", "oauth#discord") in table.items
    assert store.get("user-1") == _credential()


def test_dynamodb_store_requires_table_name(monkeypatch) -> None:
    monkeypatch.delenv("DYNAMODB_TABLE_NAME", raising=False)

    with pytest.raises(ConfigurationError):
        DynamoDBStore(StorageSettings(), resource=FakeDynamoResource())


def test_target_resolver_prefers_guild_settings_record(monkeypatch) -> None:
    monkeypatch.delenv("DISCORD_ROLE_ID", raising=False)
    records = MemoryStore()
    resolver = ProvisioningTargetResolver(
        ProvisioningSettings(DEFAULT_GUILD_ID="default-guild", DISCORD_ROLE_ID="default-role"),
        records,
    )

    assert resolver.resolve().guild_id == "default-guild"
    assert resolver.resolve().role_id == "default-role"

    resolver.save("other-guild", None)
    target = resolver.resolve("other-guild")
    assert target.guild_id == "other-guild"
    assert target.role_id is None


def test_target_resolver_without_guild_is_configuration_error(monkeypatch) -> None:
    monkeypatch.delenv("DEFAULT_GUILD_ID", raising=False)
    resolver = ProvisioningTargetResolver(ProvisioningSettings(), MemoryStore())

    with pytest.raises(ConfigurationError):
        resolver.resolve()
