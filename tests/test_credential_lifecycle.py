try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from app.clients.discord_guilds import GuildOperationError
from app.clients.discord_identity import IdentityError
from app.clients.discord_oauth import ExchangeError, RefreshError
from app.clients.memory_store import MemoryStore
from app.core.config import AddressingMode
from app.models import (
    Credential,
    FailureKind,
    FailureReason,
    ProvisioningStatus,
    ProvisioningTarget,
)
from app.models.credential import utcnow
from app.services.credential_lifecycle import CredentialLifecycleService
from app.services.credential_store import CredentialStore
from app.services.provisioning import ProvisioningService

T0 = datetime(2025, 6, 1, 9, 0, 0, tzinfo=timezone.utc)


def _credential(n: int, obtained_at: datetime | None = None) -> Credential:
    return Credential(
        token_type="Bearer",
        access_token=f"access-{n}",
        refresh_token=f"refresh-{n}",
        expires_in_seconds=3600,
        scope=frozenset({"identify", "guilds.join"}),
        obtained_at=obtained_at or datetime.now(timezone.utc),
    )


class StubOAuthClient:
    def __init__(self) -> None:
        self.exchange_error: ExchangeError | None = None
        self.refresh_error: RefreshError | None = None
        self.codes: list[str] = []
        self.refreshed_from: list[Credential] = []
        self._issued = 0

    async def exchange_authorization_code(self, code: str) -> Credential:
        self.codes.append(code)
        if self.exchange_error:
            raise self.exchange_error
        self._issued += 1
        return _credential(self._issued)

    async def refresh(self, credential: Credential) -> Credential:
        self.refreshed_from.append(credential)
        if self.refresh_error:
            raise self.refresh_error
        self._issued += 1
        return _credential(self._issued, obtained_at=T0 + timedelta(minutes=self._issued))


class StubIdentityClient:
    def __init__(self, subject_id: str = "user-42") -> None:
        self.subject_id = subject_id
        self.error: IdentityError | None = None
        self.tokens: list[str] = []

    async def resolve_subject(self, access_token: str) -> str:
        self.tokens.append(access_token)
        if self.error:
            raise self.error
        return self.subject_id


class StubGuildClient:
    def __init__(self) -> None:
        self.join_error: str | None = None
        self.role_error: str | None = None
        self.joins: list[tuple[str, str, str]] = []
        self.role_grants: list[tuple[str, str, str]] = []

    async def add_member(self, *, guild_id: str, user_id: str, access_token: str) -> bool:
        self.joins.append((guild_id, user_id, access_token))
        if self.join_error:
            raise GuildOperationError(self.join_error)
        return True

    async def assign_role(self, *, guild_id: str, user_id: str, role_id: str) -> None:
        self.role_grants.append((guild_id, user_id, role_id))
        if self.role_error:
            raise GuildOperationError(self.role_error)


class StubTargetResolver:
    def __init__(self, role_id: str | None = "role-1") -> None:
        self.role_id = role_id
        self.requested: list[str | None] = []

    def resolve(self, guild_id: str | None = None) -> ProvisioningTarget:
        self.requested.append(guild_id)
        return ProvisioningTarget(guild_id=guild_id or "guild-1", role_id=self.role_id)


class Harness:
    def __init__(
        self,
        *,
        addressing: AddressingMode = AddressingMode.PER_SUBJECT,
        role_id: str | None = "role-1",
        now: datetime | None = None,
    ) -> None:
        self.oauth = StubOAuthClient()
        self.identity = StubIdentityClient()
        self.guilds = StubGuildClient()
        self.targets = StubTargetResolver(role_id)
        self.store = CredentialStore(MemoryStore(), addressing=addressing, single_key="default")
        self.service = CredentialLifecycleService(
            oauth_client=self.oauth,
            identity_client=self.identity,
            store=self.store,
            provisioning=ProvisioningService(self.guilds),
            targets=self.targets,
            clock=(lambda: now) if now else utcnow,
        )


@pytest.mark.asyncio
async def test_complete_authorization_persists_and_fully_provisions() -> None:
    harness = Harness()

    before = datetime.now(timezone.utc)
    result = await harness.service.complete_authorization("code-1")
    after = datetime.now(timezone.utc)

    assert result.ok
    assert result.status == ProvisioningStatus.FULLY_SUCCEEDED.value
    assert result.subject_id == "user-42"
    stored = harness.store.get("user-42")
    assert stored == result.credential
    assert before <= stored.obtained_at <= after
    assert harness.guilds.joins == [("guild-1", "user-42", "access-1")]
    assert harness.guilds.role_grants == [("guild-1", "user-42", "role-1")]


@pytest.mark.asyncio
async def test_complete_authorization_uses_requested_guild() -> None:
    harness = Harness()

    result = await harness.service.complete_authorization("code-1", guild_id="guild-9")

    assert result.provisioning.guild_id == "guild-9"
    assert harness.targets.requested == ["guild-9"]


@pytest.mark.asyncio
async def test_no_role_configured_reports_joined_no_role() -> None:
    harness = Harness(role_id=None)

    result = await harness.service.complete_authorization("code-1")

    assert result.status == "joined_no_role"
    assert len(harness.guilds.role_grants) == 0


@pytest.mark.asyncio
async def test_join_failure_and_role_failure_stay_distinct() -> None:
    join_failed = Harness()
    join_failed.guilds.join_error = "HTTP 403: Missing Access"
    role_failed = Harness()
    role_failed.guilds.role_error = "HTTP 403: Missing Permissions"

    first = await join_failed.service.complete_authorization("code-1")
    second = await role_failed.service.complete_authorization("code-1")

    assert first.status == "join_failed"
    assert second.status == "joined_role_failed"
    assert first.status != second.status
    assert join_failed.guilds.role_grants == []
    # The credential is still persisted even though provisioning failed.
    assert join_failed.store.get("user-42") is not None


@pytest.mark.asyncio
async def test_exchange_failure_leaves_existing_credential_untouched() -> None:
    harness = Harness()
    original = _credential(99, obtained_at=T0)
    harness.store.put("user-42", original)
    harness.oauth.exchange_error = ExchangeError(
        FailureReason.PROVIDER_REJECTED, 'HTTP 400: {"error": "invalid_grant"}'
    )

    result = await harness.service.complete_authorization("bad-code")

    assert not result.ok
    assert result.status == FailureKind.EXCHANGE.value
    assert result.failure.reason is FailureReason.PROVIDER_REJECTED
    assert "invalid_grant" in result.failure.detail
    assert harness.store.get("user-42") == original
    assert harness.identity.tokens == []
    assert harness.guilds.joins == []


@pytest.mark.asyncio
async def test_exchange_failure_in_single_key_mode_keeps_stored_credential() -> None:
    harness = Harness(addressing=AddressingMode.SINGLE)
    original = _credential(99, obtained_at=T0)
    harness.store.put("default", original)
    harness.oauth.exchange_error = ExchangeError(FailureReason.MALFORMED_RESPONSE, "not json")

    result = await harness.service.complete_authorization("bad-code")

    assert result.failure.reason is FailureReason.MALFORMED_RESPONSE
    assert harness.store.get("default") == original


@pytest.mark.asyncio
async def test_identity_failure_stops_before_provisioning() -> None:
    harness = Harness()
    harness.identity.error = IdentityError("HTTP 401: Unauthorized")

    result = await harness.service.complete_authorization("code-1")

    assert result.status == "identity_error"
    assert result.provisioning is None
    assert harness.guilds.joins == []
    assert harness.store.get("user-42") is None


@pytest.mark.asyncio
async def test_single_key_mode_persists_before_identity_resolution() -> None:
    harness = Harness(addressing=AddressingMode.SINGLE)
    harness.identity.error = IdentityError("HTTP 401: Unauthorized")

    result = await harness.service.complete_authorization("code-1")

    assert result.status == "identity_error"
    assert harness.store.get("default") == result.credential
    assert harness.guilds.joins == []


@pytest.mark.asyncio
async def test_refresh_without_stored_credential_is_not_found() -> None:
    harness = Harness()

    result = await harness.service.refresh_credential("nobody")

    assert result.status == "not_found"
    assert result.failure.reason is FailureReason.NO_CREDENTIAL
    assert harness.oauth.refreshed_from == []
    assert harness.guilds.joins == []


@pytest.mark.asyncio
async def test_sequential_refreshes_store_the_latest_credential() -> None:
    harness = Harness()
    harness.store.put("user-42", _credential(0, obtained_at=T0))

    first = await harness.service.refresh_credential("user-42")
    second = await harness.service.refresh_credential("user-42")

    assert first.ok and second.ok
    assert first.credential != second.credential
    assert first.credential.obtained_at < second.credential.obtained_at
    assert first.credential.refresh_token != second.credential.refresh_token
    assert harness.oauth.refreshed_from[1] == first.credential
    assert harness.store.get("user-42") == second.credential
    assert harness.guilds.joins == []


@pytest.mark.asyncio
async def test_refresh_failure_keeps_previous_credential() -> None:
    harness = Harness()
    original = _credential(0, obtained_at=T0)
    harness.store.put("user-42", original)
    harness.oauth.refresh_error = RefreshError(FailureReason.PROVIDER_REJECTED, "HTTP 400")

    result = await harness.service.refresh_credential("user-42")

    assert result.status == "refresh_error"
    assert harness.store.get("user-42") == original


@pytest.mark.asyncio
async def test_get_credential_reads_without_side_effects() -> None:
    harness = Harness(addressing=AddressingMode.SINGLE)
    credential = _credential(1)
    harness.store.put("default", credential)

    assert harness.service.get_credential() == credential
    assert harness.service.credential_key("ignored") == "default"
    assert harness.oauth.refreshed_from == []


@pytest.mark.asyncio
async def test_provision_stored_refreshes_stale_credential_first() -> None:
    harness = Harness(now=T0 + timedelta(hours=2))
    harness.store.put("user-42", _credential(0, obtained_at=T0))

    result = await harness.service.provision_stored("user-42")

    assert result.status == "fully_succeeded"
    assert len(harness.oauth.refreshed_from) == 1
    refreshed = harness.store.get("user-42")
    assert harness.guilds.joins == [("guild-1", "user-42", refreshed.access_token)]


@pytest.mark.asyncio
async def test_provision_stored_with_fresh_credential_skips_refresh() -> None:
    harness = Harness(now=T0 + timedelta(minutes=5))
    harness.store.put("user-42", _credential(0, obtained_at=T0))

    result = await harness.service.provision_stored("user-42", guild_id="guild-7")

    assert result.status == "fully_succeeded"
    assert harness.oauth.refreshed_from == []
    assert harness.guilds.joins == [("guild-7", "user-42", "access-0")]


@pytest.mark.asyncio
async def test_provision_stored_without_credential_is_not_found() -> None:
    harness = Harness()

    result = await harness.service.provision_stored("user-42")

    assert result.status == "not_found"
    assert harness.guilds.joins == []
