"""Firestore integration over the REST API."""

from staccato_api.infrastructure.firebase._rest_client import FirestoreClient
from staccato_api.infrastructure.firebase._rest_encoding import GeoPoint, Reference
from staccato_api.infrastructure.firebase.client import (
    close_firestore,
    get_firestore_client,
    init_firestore,
)
from staccato_api.infrastructure.firebase.credentials import (
    AccessToken,
    CredentialManager,
    EmulatorCredentialManager,
    ServiceAccountCredential,
)

__all__ = [
    "AccessToken",
    "CredentialManager",
    "EmulatorCredentialManager",
    "FirestoreClient",
    "GeoPoint",
    "Reference",
    "ServiceAccountCredential",
    "close_firestore",
    "get_firestore_client",
    "init_firestore",
]
