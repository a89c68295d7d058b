"""
Member Sync Module

Mirrors Skool community members into Firebase:
- Field extraction from loosely-shaped webhook payloads
- Profile document lookup-or-create in Firestore (email keyed)
- Auth identity lookup-or-create with membership custom claims
- Cross-linking the identity uid onto the profile
"""

from .models import (
    NormalizedMemberEvent,
    ProfileRecord,
    IdentityRecord,
    IdentityLookup,
    SyncResult,
    SyncAction,
    LookupStatus,
    SERVER_TIMESTAMP,
)
from .errors import (
    MemberSyncError,
    ValidationError,
    MissingEmailError,
    MalformedInput,
    UpstreamFailure,
)
from .extractor import extract_member_event, parse_member_payload
from .stores import ProfileStore, IdentityStore
from .service import MemberSyncService

__all__ = [
    'NormalizedMemberEvent',
    'ProfileRecord',
    'IdentityRecord',
    'IdentityLookup',
    'SyncResult',
    'SyncAction',
    'LookupStatus',
    'SERVER_TIMESTAMP',
    'MemberSyncError',
    'ValidationError',
    'MissingEmailError',
    'MalformedInput',
    'UpstreamFailure',
    'extract_member_event',
    'parse_member_payload',
    'ProfileStore',
    'IdentityStore',
    'MemberSyncService',
]
