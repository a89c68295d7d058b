"""
Member Sync - Dependency Providers

Process-wide store instances, created on first request according to
STORE_BACKEND and reused afterwards. Tests swap them out with
app.dependency_overrides[get_member_sync_service].
"""

import logging
import threading
from typing import Optional

from config import get_settings

from .stores import ProfileStore, IdentityStore
from .service import MemberSyncService

logger = logging.getLogger(__name__)

_profile_store: Optional[ProfileStore] = None
_identity_store: Optional[IdentityStore] = None
_lock = threading.Lock()


def _build_stores():
    settings = get_settings()

    if settings.STORE_BACKEND == "memory":
        from .memory_store import InMemoryProfileStore, InMemoryIdentityStore
        logger.warning("Using in-memory member stores, data is lost on restart")
        return InMemoryProfileStore(), InMemoryIdentityStore()

    if settings.STORE_BACKEND == "firebase":
        from .firebase_store import FirestoreProfileStore, FirebaseAuthIdentityStore
        return FirestoreProfileStore(collection=settings.PROFILE_COLLECTION), FirebaseAuthIdentityStore()

    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")


def _ensure_stores():
    global _profile_store, _identity_store
    if _profile_store is not None and _identity_store is not None:
        return
    with _lock:
        if _profile_store is None or _identity_store is None:
            _profile_store, _identity_store = _build_stores()


def get_profile_store() -> ProfileStore:
    _ensure_stores()
    return _profile_store


def get_identity_store() -> IdentityStore:
    _ensure_stores()
    return _identity_store


def get_member_sync_service() -> MemberSyncService:
    """FastAPI dependency returning the member sync service."""
    return MemberSyncService(get_profile_store(), get_identity_store())


def reset_stores():
    """Drop cached store instances (settings changes, tests)."""
    global _profile_store, _identity_store
    with _lock:
        _profile_store = None
        _identity_store = None
