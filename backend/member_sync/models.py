"""
Member Sync - Data Models

Typed representations of the inbound Skool member event and of the records
kept in the profile store (Firestore) and identity store (Firebase Auth).

Profile field names are the Firestore document schema read by the member
app, so they stay camelCase on the wire.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any


def iso_timestamp() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ServerTimestamp(str, Enum):
    """Placeholder resolved to the store's own clock at write time."""
    SERVER_TIMESTAMP = "server_timestamp"


SERVER_TIMESTAMP = ServerTimestamp.SERVER_TIMESTAMP


class SyncAction(str, Enum):
    """What happened to the profile record"""
    CREATED = "created"
    UPDATED = "updated"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


# Firestore profile document constants
PROFILE_SOURCE = "skool_direct"
JOIN_METHOD = "direct_skool"


@dataclass
class NormalizedMemberEvent:
    """Member event after field extraction."""
    email: str
    name: str
    member_id: Optional[Any] = None
    is_paid: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    def get_safe_metadata(self) -> Dict[str, Any]:
        """Metadata safe for logging (no raw payload)."""
        return {
            'email': self.email,
            'name': self.name,
            'member_id': self.member_id,
            'is_paid': self.is_paid,
        }


@dataclass
class ProfileRecord:
    """Member profile document in the profile store."""
    id: str
    email: str
    name: Optional[str] = None
    skool_member: bool = False
    skool_id: Optional[Any] = None
    skool_join_date: Optional[datetime] = None
    skool_status: Optional[str] = None
    is_paid: bool = False
    created_at: Optional[datetime] = None
    source: Optional[str] = None
    last_sync_from_skool: Optional[datetime] = None
    skool_data: Dict[str, Any] = field(default_factory=dict)
    firebase_auth_id: Optional[str] = None
    last_auth_sync: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "ProfileRecord":
        return cls(
            id=doc_id,
            email=data.get("email"),
            name=data.get("name"),
            skool_member=bool(data.get("skoolMember", False)),
            skool_id=data.get("skoolId"),
            skool_join_date=data.get("skoolJoinDate"),
            skool_status=data.get("skoolStatus"),
            is_paid=bool(data.get("isPaid", False)),
            created_at=data.get("createdAt"),
            source=data.get("source"),
            last_sync_from_skool=data.get("lastSyncFromSkool"),
            skool_data=data.get("skoolData") or {},
            firebase_auth_id=data.get("firebaseAuthId"),
            last_auth_sync=data.get("lastAuthSync"),
        )


@dataclass
class IdentityRecord:
    """Login identity in the identity store."""
    id: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False
    custom_claims: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IdentityLookup:
    """
    Result of looking up an identity by email.

    A missing identity is an ordinary outcome (NOT_FOUND); only ERROR carries
    a failure.
    """
    status: LookupStatus
    identity: Optional[IdentityRecord] = None
    error: Optional[Exception] = None

    @classmethod
    def found(cls, identity: IdentityRecord) -> "IdentityLookup":
        return cls(status=LookupStatus.FOUND, identity=identity)

    @classmethod
    def not_found(cls) -> "IdentityLookup":
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: Exception) -> "IdentityLookup":
        return cls(status=LookupStatus.ERROR, error=error)


@dataclass
class SyncResult:
    """Outcome of a member reconciliation."""
    success: bool
    profile_id: Optional[str] = None
    identity_id: Optional[str] = None
    action: Optional[SyncAction] = None
    error: Optional[str] = None
