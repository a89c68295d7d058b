from .firebase import (
    get_firebase_app,
    init_firebase,
    is_firebase_initialized,
    get_firestore_client,
)

__all__ = [
    'get_firebase_app',
    'init_firebase',
    'is_firebase_initialized',
    'get_firestore_client',
]
