"""
Member Sync - In-Memory Stores

Process-local implementations of the profile and identity stores.
Used by the test suite and for local development (STORE_BACKEND=memory).
Data is lost on restart.
"""

import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import (
    ProfileRecord,
    IdentityRecord,
    IdentityLookup,
    ServerTimestamp,
)
from .stores import ProfileStore, IdentityStore

logger = logging.getLogger(__name__)


def _resolve_timestamps(fields: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {
        key: now if isinstance(value, ServerTimestamp) else value
        for key, value in fields.items()
    }


class InMemoryProfileStore(ProfileStore):
    """Profile documents kept in a dict, in insertion order."""

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    async def find_by_email(self, email: str) -> Optional[ProfileRecord]:
        with self._lock:
            for doc_id, data in self._documents.items():
                if data.get("email") == email:
                    return ProfileRecord.from_document(doc_id, copy.deepcopy(data))
        return None

    async def create(self, fields: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._documents[doc_id] = _resolve_timestamps(copy.deepcopy(fields))
        return doc_id

    async def update(self, profile_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            if profile_id not in self._documents:
                raise KeyError(f"No profile document with id {profile_id}")
            self._documents[profile_id].update(_resolve_timestamps(copy.deepcopy(fields)))

    def get(self, profile_id: str) -> Optional[ProfileRecord]:
        """Get profile by ID"""
        with self._lock:
            data = self._documents.get(profile_id)
            if data is None:
                return None
            return ProfileRecord.from_document(profile_id, copy.deepcopy(data))

    def get_document(self, profile_id: str) -> Optional[Dict[str, Any]]:
        """Raw document fields, as they would appear in Firestore"""
        with self._lock:
            data = self._documents.get(profile_id)
            return copy.deepcopy(data) if data is not None else None

    def list_by_email(self, email: str) -> List[ProfileRecord]:
        """All profiles for an email (more than one only after a race)"""
        with self._lock:
            return [
                ProfileRecord.from_document(doc_id, copy.deepcopy(data))
                for doc_id, data in self._documents.items()
                if data.get("email") == email
            ]

    def __len__(self) -> int:
        return len(self._documents)


class InMemoryIdentityStore(IdentityStore):
    """Identities keyed by uid with a unique email index."""

    def __init__(self):
        self._identities: Dict[str, IdentityRecord] = {}
        self._lock = threading.Lock()

    async def lookup_by_email(self, email: str) -> IdentityLookup:
        with self._lock:
            for identity in self._identities.values():
                if identity.email == email:
                    return IdentityLookup.found(copy.deepcopy(identity))
        return IdentityLookup.not_found()

    async def create(
        self,
        email: str,
        display_name: str,
        password: str,
        email_verified: bool = False
    ) -> IdentityRecord:
        if len(password) < 6:
            raise ValueError("Password must be at least 6 characters long")

        with self._lock:
            if any(i.email == email for i in self._identities.values()):
                raise ValueError(f"The user with the provided email already exists: {email}")

            identity = IdentityRecord(
                id=uuid.uuid4().hex[:28],
                email=email,
                display_name=display_name,
                email_verified=email_verified,
            )
            self._identities[identity.id] = identity
            return copy.deepcopy(identity)

    async def set_custom_claims(self, identity_id: str, claims: Dict[str, Any]) -> None:
        with self._lock:
            identity = self._identities.get(identity_id)
            if identity is None:
                raise KeyError(f"No identity with id {identity_id}")
            identity.custom_claims = dict(claims)

    def add(self, identity: IdentityRecord) -> IdentityRecord:
        """Seed an identity directly (existing accounts)"""
        with self._lock:
            self._identities[identity.id] = copy.deepcopy(identity)
        return identity

    def get(self, identity_id: str) -> Optional[IdentityRecord]:
        with self._lock:
            identity = self._identities.get(identity_id)
            return copy.deepcopy(identity) if identity else None

    def __len__(self) -> int:
        return len(self._identities)
