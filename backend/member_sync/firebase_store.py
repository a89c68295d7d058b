"""
Member Sync - Firebase Stores

ProfileStore backed by Cloud Firestore and IdentityStore backed by
Firebase Authentication, both through the firebase_admin SDK.

The Admin SDK is blocking; every call runs in a worker thread and is awaited
before the caller continues.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from firebase_admin import auth
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from database.firebase import get_firebase_app, get_firestore_client

from .models import (
    ProfileRecord,
    IdentityRecord,
    IdentityLookup,
    ServerTimestamp,
)
from .stores import ProfileStore, IdentityStore

logger = logging.getLogger(__name__)


def to_firestore_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Swap SERVER_TIMESTAMP placeholders for Firestore's server timestamp."""
    return {
        key: firestore.SERVER_TIMESTAMP if isinstance(value, ServerTimestamp) else value
        for key, value in fields.items()
    }


def identity_from_user_record(user) -> IdentityRecord:
    return IdentityRecord(
        id=user.uid,
        email=user.email,
        display_name=user.display_name,
        email_verified=bool(user.email_verified),
        custom_claims=dict(user.custom_claims or {}),
    )


class FirestoreProfileStore(ProfileStore):
    """
    Member profiles in a Firestore collection.

    The client is resolved on first use so the store can be constructed
    before Firebase credentials are available.
    """

    def __init__(self, collection: str = "users", client_factory: Callable = get_firestore_client):
        self.collection_name = collection
        self._client_factory = client_factory
        self._client = None

    def _collection(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client.collection(self.collection_name)

    async def find_by_email(self, email: str) -> Optional[ProfileRecord]:
        query = self._collection().where(filter=FieldFilter("email", "==", email))
        snapshots = await asyncio.to_thread(query.get)

        if not snapshots:
            return None

        snapshot = snapshots[0]
        if len(snapshots) > 1:
            logger.warning(f"{len(snapshots)} profiles share email {email}, using {snapshot.id}")
        return ProfileRecord.from_document(snapshot.id, snapshot.to_dict() or {})

    async def create(self, fields: Dict[str, Any]) -> str:
        _, doc_ref = await asyncio.to_thread(
            self._collection().add, to_firestore_fields(fields)
        )
        return doc_ref.id

    async def update(self, profile_id: str, fields: Dict[str, Any]) -> None:
        doc_ref = self._collection().document(profile_id)
        await asyncio.to_thread(doc_ref.update, to_firestore_fields(fields))


class FirebaseAuthIdentityStore(IdentityStore):
    """Identities in Firebase Authentication."""

    def __init__(self, app_factory: Callable = get_firebase_app):
        self._app_factory = app_factory

    async def lookup_by_email(self, email: str) -> IdentityLookup:
        try:
            user = await asyncio.to_thread(auth.get_user_by_email, email, app=self._app_factory())
        except auth.UserNotFoundError:
            return IdentityLookup.not_found()
        except Exception as e:
            return IdentityLookup.failed(e)
        return IdentityLookup.found(identity_from_user_record(user))

    async def create(
        self,
        email: str,
        display_name: str,
        password: str,
        email_verified: bool = False
    ) -> IdentityRecord:
        user = await asyncio.to_thread(
            auth.create_user,
            email=email,
            display_name=display_name,
            password=password,
            email_verified=email_verified,
            app=self._app_factory(),
        )
        return identity_from_user_record(user)

    async def set_custom_claims(self, identity_id: str, claims: Dict[str, Any]) -> None:
        await asyncio.to_thread(
            auth.set_custom_user_claims, identity_id, dict(claims), app=self._app_factory()
        )
