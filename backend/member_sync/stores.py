"""
Member Sync - Store Interfaces

The reconciler talks to two backing stores through these interfaces:
- ProfileStore: member profile documents (Firestore in production)
- IdentityStore: login identities and custom claims (Firebase Auth)

Field values equal to SERVER_TIMESTAMP must be replaced by the store's
own current time when written.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import ProfileRecord, IdentityRecord, IdentityLookup


class ProfileStore(ABC):
    """Document store holding member profiles, queried by email."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[ProfileRecord]:
        """Return the first profile whose email equals ``email`` exactly."""

    @abstractmethod
    async def create(self, fields: Dict[str, Any]) -> str:
        """Insert a new profile document and return its store-assigned id."""

    @abstractmethod
    async def update(self, profile_id: str, fields: Dict[str, Any]) -> None:
        """Set ``fields`` on an existing profile, leaving other fields untouched."""


class IdentityStore(ABC):
    """Authentication service holding identities keyed by email."""

    @abstractmethod
    async def lookup_by_email(self, email: str) -> IdentityLookup:
        """Look up an identity; absence is reported as NOT_FOUND, not raised."""

    @abstractmethod
    async def create(
        self,
        email: str,
        display_name: str,
        password: str,
        email_verified: bool = False
    ) -> IdentityRecord:
        """Create a new identity."""

    @abstractmethod
    async def set_custom_claims(self, identity_id: str, claims: Dict[str, Any]) -> None:
        """Replace the identity's custom claims with ``claims`` (no merge)."""
