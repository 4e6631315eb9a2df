"""
Firebase Config Module

Lazily initializes the firebase-admin SDK and hands out a Firestore client.

Functions:
    get_db: Return the Firestore client, or None if Firebase is unavailable.
"""

import logging

import firebase_admin
from firebase_admin import credentials, firestore
from google.auth.exceptions import GoogleAuthError

from config.settings import FIREBASE_CREDENTIALS

logger = logging.getLogger(__name__)

_db = None


def _initialize_app() -> None:
    """Initialize the default Firebase app unless it already exists."""
    try:
        firebase_admin.get_app()
        return
    except ValueError:
        pass

    if FIREBASE_CREDENTIALS:
        cred = credentials.Certificate(FIREBASE_CREDENTIALS)
    else:
        cred = credentials.ApplicationDefault()
    firebase_admin.initialize_app(cred)


def get_db():
    """
    Get the shared Firestore client.

    Initializes the default Firebase app on first use, with the service
    account file from FIREBASE_CREDENTIALS when set, otherwise with
    application default credentials.

    Returns:
        firestore.Client | None: The client, or None if initialization failed.
    """
    global _db
    if _db is not None:
        return _db

    try:
        _initialize_app()
        _db = firestore.client()
    except (ValueError, OSError, GoogleAuthError) as e:
        logger.warning("Firestore is not available: %s", e)
        return None

    return _db
