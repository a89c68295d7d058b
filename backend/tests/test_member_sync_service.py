"""
Unit Tests for Member Sync Reconciliation

Tests MemberSyncService against the in-memory stores:
- Profile create-then-update idempotence
- Identity creation vs. claim overwrite
- Cross-link invariant
- Failure handling (no retry, no rollback)
- Sync data bound to the log context

Run with: pytest tests/test_member_sync_service.py -v
"""

import pytest
from unittest.mock import AsyncMock, patch

from logging_config import clear_sync_context, get_sync_context
from member_sync.service import MemberSyncService, generate_temp_password, TEMP_PASSWORD_SUFFIX
from member_sync.memory_store import InMemoryProfileStore, InMemoryIdentityStore
from member_sync.extractor import extract_member_event
from member_sync.models import (
    IdentityRecord,
    IdentityLookup,
    SyncAction,
    PROFILE_SOURCE,
    JOIN_METHOD,
)


@pytest.fixture
def profiles():
    return InMemoryProfileStore()


@pytest.fixture
def identities():
    return InMemoryIdentityStore()


@pytest.fixture
def service(profiles, identities):
    return MemberSyncService(profiles, identities)


def member(**fields):
    payload = {"email": "a@x.com", "name": "A"}
    payload.update(fields)
    return extract_member_event(payload)


class TestProfileReconciliation:
    """Test profile lookup-or-create."""

    @pytest.mark.asyncio
    async def test_first_sync_creates_profile(self, service, profiles):
        result = await service.reconcile(member(id="sk-1", isPaid=True))

        assert result.success is True
        assert result.action == SyncAction.CREATED

        doc = profiles.get_document(result.profile_id)
        assert doc["email"] == "a@x.com"
        assert doc["name"] == "A"
        assert doc["skoolMember"] is True
        assert doc["skoolId"] == "sk-1"
        assert doc["skoolStatus"] == "active"
        assert doc["isPaid"] is True
        assert doc["source"] == PROFILE_SOURCE
        assert doc["createdAt"] is not None
        assert doc["skoolJoinDate"] is not None
        assert doc["lastSyncFromSkool"] is not None
        assert doc["skoolData"]["joinMethod"] == JOIN_METHOD
        assert doc["skoolData"]["originalData"]["email"] == "a@x.com"

    @pytest.mark.asyncio
    async def test_second_sync_updates_same_profile(self, service, profiles):
        first = await service.reconcile(member())
        second = await service.reconcile(member())

        assert first.action == SyncAction.CREATED
        assert second.action == SyncAction.UPDATED
        assert second.profile_id == first.profile_id
        assert len(profiles.list_by_email("a@x.com")) == 1

    @pytest.mark.asyncio
    async def test_update_overwrites_member_id_and_audit_blob(self, service, profiles):
        first = await service.reconcile(member(id="old", plan="basic"))
        await service.reconcile(member(id="new", plan="pro"))

        doc = profiles.get_document(first.profile_id)
        assert doc["skoolId"] == "new"
        assert doc["skoolData"]["originalData"]["plan"] == "pro"

    @pytest.mark.asyncio
    async def test_update_keeps_creation_only_fields(self, service, profiles):
        first = await service.reconcile(member(name="Original", isPaid=True))
        created_at = profiles.get_document(first.profile_id)["createdAt"]

        await service.reconcile(member(name="Renamed"))

        doc = profiles.get_document(first.profile_id)
        assert doc["name"] == "Original"
        assert doc["isPaid"] is True
        assert doc["createdAt"] == created_at

    @pytest.mark.asyncio
    async def test_existing_profile_without_identity(self, service, profiles, identities):
        """A profile created elsewhere gets updated and linked."""
        profile_id = await profiles.create({"email": "a@x.com", "name": "Legacy"})

        result = await service.reconcile(member())

        assert result.action == SyncAction.UPDATED
        assert result.profile_id == profile_id
        assert len(identities) == 1


class TestIdentityReconciliation:
    """Test identity lookup-or-create and custom claims."""

    @pytest.mark.asyncio
    async def test_new_identity_gets_password_reset_claim(self, service, identities):
        result = await service.reconcile(member(id="sk-1"))

        identity = identities.get(result.identity_id)
        assert identity.email == "a@x.com"
        assert identity.display_name == "A"
        assert identity.email_verified is False
        assert identity.custom_claims == {
            "skoolMember": True,
            "skoolId": "sk-1",
            "isPaid": False,
            "needsPasswordReset": True,
        }

    @pytest.mark.asyncio
    async def test_existing_identity_claims_overwritten(self, service, identities):
        """Prior claims are replaced, not merged."""
        identities.add(IdentityRecord(
            id="uid-1",
            email="a@x.com",
            custom_claims={"admin": True, "needsPasswordReset": True, "legacy": "x"},
        ))

        result = await service.reconcile(member(id="sk-2", isPaid=True))

        assert result.identity_id == "uid-1"
        assert identities.get("uid-1").custom_claims == {
            "skoolMember": True,
            "skoolId": "sk-2",
            "isPaid": True,
        }

    @pytest.mark.asyncio
    async def test_repeat_sync_keeps_identity(self, service, identities):
        first = await service.reconcile(member())
        second = await service.reconcile(member())

        assert second.identity_id == first.identity_id
        assert len(identities) == 1
        # Reset flag only survives until the first update
        assert "needsPasswordReset" not in identities.get(first.identity_id).custom_claims

    @pytest.mark.asyncio
    async def test_lookup_error_fails_sync(self, profiles):
        identities = AsyncMock()
        identities.lookup_by_email.return_value = IdentityLookup.failed(RuntimeError("quota exceeded"))
        service = MemberSyncService(profiles, identities)

        result = await service.reconcile(member())

        assert result.success is False
        assert result.error == "quota exceeded"
        identities.create.assert_not_called()


class TestCrossLink:
    """Test profile.firebaseAuthId == identity uid."""

    @pytest.mark.asyncio
    async def test_linked_after_create(self, service, profiles):
        result = await service.reconcile(member())

        doc = profiles.get_document(result.profile_id)
        assert doc["firebaseAuthId"] == result.identity_id
        assert doc["lastAuthSync"] is not None

    @pytest.mark.asyncio
    async def test_linked_after_update_with_existing_identity(self, service, profiles, identities):
        identities.add(IdentityRecord(id="uid-9", email="a@x.com"))
        await profiles.create({"email": "a@x.com"})

        result = await service.reconcile(member())

        assert profiles.get(result.profile_id).firebase_auth_id == "uid-9"


class TestFailureHandling:
    """Test failure results."""

    @pytest.mark.asyncio
    async def test_profile_store_failure(self, identities):
        profiles = AsyncMock()
        profiles.find_by_email.side_effect = ConnectionError("firestore unavailable")
        service = MemberSyncService(profiles, identities)

        result = await service.reconcile(member())

        assert result.success is False
        assert result.error == "firestore unavailable"
        assert result.profile_id is None
        assert len(identities) == 0

    @pytest.mark.asyncio
    async def test_identity_failure_leaves_profile_unlinked(self, profiles):
        """No compensation: the created profile stays, without a link."""
        identities = AsyncMock()
        identities.lookup_by_email.return_value = IdentityLookup.not_found()
        identities.create.side_effect = ValueError("weak password")
        service = MemberSyncService(profiles, identities)

        result = await service.reconcile(member())

        assert result.success is False
        stored = profiles.list_by_email("a@x.com")
        assert len(stored) == 1
        assert stored[0].firebase_auth_id is None

    @pytest.mark.asyncio
    async def test_failure_reported_to_error_tracking(self, identities):
        profiles = AsyncMock()
        profiles.find_by_email.side_effect = ConnectionError("down")
        service = MemberSyncService(profiles, identities)

        with patch("member_sync.service.capture_exception") as mock_capture:
            await service.reconcile(member())

        mock_capture.assert_called_once()
        assert mock_capture.call_args.kwargs["stage"] == "profile"

    @pytest.mark.asyncio
    async def test_no_retry(self, identities):
        profiles = AsyncMock()
        profiles.find_by_email.side_effect = ConnectionError("down")
        service = MemberSyncService(profiles, identities)

        await service.reconcile(member())

        assert profiles.find_by_email.await_count == 1


class TestSyncLogContext:
    """Test the sync data stamped on log records during reconcile."""

    @pytest.mark.asyncio
    async def test_context_carries_ids_after_success(self, service):
        clear_sync_context()

        result = await service.reconcile(member())

        assert get_sync_context() == {
            "member_email": "a@x.com",
            "stage": "link",
            "profile_id": result.profile_id,
            "identity_id": result.identity_id,
        }

    @pytest.mark.asyncio
    async def test_context_records_failing_stage(self, profiles):
        clear_sync_context()
        identities = AsyncMock()
        identities.lookup_by_email.return_value = IdentityLookup.failed(ConnectionError("auth down"))
        service = MemberSyncService(profiles, identities)

        result = await service.reconcile(member())

        context = get_sync_context()
        assert result.success is False
        assert context["stage"] == "identity"
        assert context["profile_id"] == profiles.list_by_email("a@x.com")[0].id
        assert "identity_id" not in context


class TestTempPassword:

    def test_unique_per_call(self):
        assert generate_temp_password() != generate_temp_password()

    def test_meets_minimum_strength(self):
        password = generate_temp_password()
        assert len(password) >= 6
        assert password.endswith(TEMP_PASSWORD_SUFFIX)
