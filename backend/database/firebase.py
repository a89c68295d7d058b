"""
Firebase Admin app lifecycle.

One firebase_admin App per process, initialized on first use and kept for
the process lifetime. Firestore and Auth clients are derived from it.
"""

import logging
import threading

import firebase_admin
from firebase_admin import credentials, firestore

from config import get_settings

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


def get_firebase_app() -> firebase_admin.App:
    """Return the default Firebase app, initializing it once if needed."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            return init_firebase()


def init_firebase() -> firebase_admin.App:
    """
    Initialize the default Firebase app from settings.

    Raises:
        ValueError: If the service account credentials are not configured
    """
    settings = get_settings()
    if not settings.firebase_configured:
        raise ValueError(
            "Firebase credentials are not configured. "
            "Set FIREBASE_PROJECT_ID, FIREBASE_CLIENT_EMAIL and FIREBASE_PRIVATE_KEY."
        )

    logger.info("Initializing Firebase...")
    logger.info(f"Project ID: {settings.FIREBASE_PROJECT_ID}")
    logger.info(f"Client Email: {settings.FIREBASE_CLIENT_EMAIL}")
    logger.debug(f"Private key length: {len(settings.FIREBASE_PRIVATE_KEY)}")

    cred = credentials.Certificate(settings.firebase_credentials())
    app = firebase_admin.initialize_app(cred, {
        "projectId": settings.FIREBASE_PROJECT_ID,
        "databaseURL": settings.FIREBASE_DATABASE_URL,
    })

    logger.info("Firebase initialized")
    return app


def is_firebase_initialized() -> bool:
    """True once the default app exists."""
    try:
        firebase_admin.get_app()
        return True
    except ValueError:
        return False


def get_firestore_client():
    """Firestore client bound to the default app."""
    return firestore.client(get_firebase_app())
