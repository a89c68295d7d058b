"""
Member Sync - Service Layer

Reconciles a Skool member event with the profile store and identity store:
- Profile lookup-or-create by email
- Identity lookup-or-create by email, custom claims overwritten every sync
- Cross-link of the identity id onto the profile

Every store call is awaited in order. Nothing is retried and nothing is
rolled back: a profile can be written while the identity step then fails,
leaving firebaseAuthId unset until the next successful sync.
"""

import logging
import secrets
from typing import Any, Dict, Tuple

from logging_config import bind_sync_context
from sentry_integration import capture_exception

from .errors import UpstreamFailure
from .models import (
    NormalizedMemberEvent,
    IdentityRecord,
    LookupStatus,
    MembershipStatus,
    SyncAction,
    SyncResult,
    SERVER_TIMESTAMP,
    PROFILE_SOURCE,
    JOIN_METHOD,
    iso_timestamp,
)
from .stores import ProfileStore, IdentityStore

logger = logging.getLogger(__name__)

# Appended to the random part so generated passwords always contain an
# uppercase letter, a digit and a symbol
TEMP_PASSWORD_SUFFIX = "A1!"


def generate_temp_password() -> str:
    """Random throwaway password for a new identity; the member resets it."""
    return secrets.token_urlsafe(12) + TEMP_PASSWORD_SUFFIX


class MemberSyncService:
    """
    Member Sync Service - mirrors Skool members into Firebase.

    Ensures, per email:
    - One profile document marked as an active Skool member
    - One login identity carrying the membership claims
    - profile.firebaseAuthId == identity uid after every successful sync
    """

    def __init__(self, profiles: ProfileStore, identities: IdentityStore):
        self.profiles = profiles
        self.identities = identities

    async def reconcile(self, event: NormalizedMemberEvent) -> SyncResult:
        """
        Sync one member event.

        Never raises: any store failure is logged and returned as
        SyncResult(success=False, error=...).
        """
        logger.info(f"Syncing Skool member: {event.get_safe_metadata()}")
        stage = "profile"
        bind_sync_context(member_email=event.email, stage=stage)

        try:
            profile_id, action = await self._upsert_profile(event)

            stage = "identity"
            bind_sync_context(stage=stage, profile_id=profile_id)
            identity = await self._ensure_identity(event)

            stage = "link"
            bind_sync_context(stage=stage, identity_id=identity.id)
            await self.profiles.update(profile_id, {
                "firebaseAuthId": identity.id,
                "lastAuthSync": SERVER_TIMESTAMP,
            })
        except Exception as e:
            logger.error(f"Member sync failed at {stage} stage: {e}")
            capture_exception(e, stage=stage)
            return SyncResult(success=False, error=str(e))

        logger.info(f"Member sync complete: profile={profile_id}, identity={identity.id}, action={action.value}")

        return SyncResult(
            success=True,
            profile_id=profile_id,
            identity_id=identity.id,
            action=action,
        )

    # ==================== PROFILE STORE ====================

    def _membership_fields(self, event: NormalizedMemberEvent) -> Dict[str, Any]:
        """Fields written on every sync, for new and existing profiles alike."""
        return {
            "skoolMember": True,
            "skoolId": event.member_id,
            "skoolJoinDate": SERVER_TIMESTAMP,
            "skoolStatus": MembershipStatus.ACTIVE.value,
            "lastSyncFromSkool": SERVER_TIMESTAMP,
            "skoolData": {
                "joinMethod": JOIN_METHOD,
                "syncDate": iso_timestamp(),
                "originalData": event.raw,
            },
        }

    async def _upsert_profile(self, event: NormalizedMemberEvent) -> Tuple[str, SyncAction]:
        existing = await self.profiles.find_by_email(event.email)

        if existing:
            await self.profiles.update(existing.id, self._membership_fields(event))
            logger.info(f"Existing profile updated: {existing.id}")
            return existing.id, SyncAction.UPDATED

        fields = {
            "email": event.email,
            "name": event.name,
            **self._membership_fields(event),
            "isPaid": event.is_paid,
            "createdAt": SERVER_TIMESTAMP,
            "source": PROFILE_SOURCE,
        }
        profile_id = await self.profiles.create(fields)
        logger.info(f"New profile created: {profile_id}")
        return profile_id, SyncAction.CREATED

    # ==================== IDENTITY STORE ====================

    async def _ensure_identity(self, event: NormalizedMemberEvent) -> IdentityRecord:
        lookup = await self.identities.lookup_by_email(event.email)

        claims = {
            "skoolMember": True,
            "skoolId": event.member_id,
            "isPaid": event.is_paid,
        }

        if lookup.status == LookupStatus.FOUND:
            identity = lookup.identity
            logger.info(f"Auth user already exists: {identity.id}")
            await self.identities.set_custom_claims(identity.id, claims)
            return identity

        if lookup.status == LookupStatus.NOT_FOUND:
            logger.info("Creating new auth user")
            identity = await self.identities.create(
                email=event.email,
                display_name=event.name,
                password=generate_temp_password(),
                email_verified=False,
            )
            await self.identities.set_custom_claims(identity.id, {
                **claims,
                "needsPasswordReset": True,
            })
            logger.info(f"New auth user created: {identity.id}")
            return identity

        raise UpstreamFailure(str(lookup.error)) from lookup.error
