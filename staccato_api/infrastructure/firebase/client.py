"""Process-wide Firestore client (REST-based, no firebase-admin).

Initialized at app startup from settings. Credentials come from, in order:
FIREBASE_PROJECT_ID + FIREBASE_CLIENT_EMAIL + FIREBASE_PRIVATE_KEY,
FIREBASE_SERVICE_ACCOUNT_KEY (full JSON string), or
FIREBASE_SERVICE_ACCOUNT_PATH (file path). With USE_FIREBASE_EMULATOR the
client talks to FIRESTORE_EMULATOR_HOST and skips token exchange.
"""

import json
import logging
from datetime import timedelta

import httpx

from staccato_api.core.config import Settings, get_settings
from staccato_api.domain.exceptions import ConfigurationException, StaccatoException
from staccato_api.infrastructure.firebase._rest_client import FirestoreClient
from staccato_api.infrastructure.firebase.credentials import (
    CredentialManager,
    EmulatorCredentialManager,
    ServiceAccountCredential,
)

logger = logging.getLogger(__name__)

_firestore_client: FirestoreClient | None = None


def load_service_account(settings: Settings) -> ServiceAccountCredential | None:
    """Return service account credentials from settings, or None if unset.

    Raises:
        ConfigurationException: If a configured source is malformed
            (invalid JSON, missing file, missing required key).
    """
    private_key = (
        settings.firebase_private_key.get_secret_value()
        if settings.firebase_private_key
        else None
    )
    if settings.firebase_project_id and settings.firebase_client_email and private_key:
        return ServiceAccountCredential(
            project_id=settings.firebase_project_id,
            client_email=settings.firebase_client_email,
            private_key=private_key,
            private_key_id=settings.firebase_private_key_id,
            token_uri=settings.firebase_token_uri,
        )

    key_json = (
        settings.firebase_service_account_key.get_secret_value()
        if settings.firebase_service_account_key
        else None
    )
    if key_json:
        try:
            info = json.loads(key_json)
        except json.JSONDecodeError as e:
            raise ConfigurationException(
                "FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON",
                setting="firebase_service_account_key",
            ) from e
        return ServiceAccountCredential.from_service_account_info(info)

    if settings.firebase_service_account_path:
        return ServiceAccountCredential.from_file(settings.firebase_service_account_path)
    return None


def build_firestore_client(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> FirestoreClient | None:
    """Build a FirestoreClient for settings; None when Firestore is not configured."""
    if settings.use_firebase_emulator:
        project_id = settings.firebase_project_id
        if not project_id:
            raise ConfigurationException(
                "FIREBASE_PROJECT_ID is required with the Firestore emulator",
                setting="firebase_project_id",
            )
        logger.info("Using Firestore emulator at %s", settings.firestore_emulator_host)
        return FirestoreClient(
            project_id,
            EmulatorCredentialManager(),
            http_client=http_client,
            timeout=settings.firestore_timeout_seconds,
            base_url=f"http://{settings.firestore_emulator_host}/v1",
        )

    credential = load_service_account(settings)
    if credential is None:
        return None
    manager = CredentialManager(
        credential,
        http_client=http_client,
        refresh_margin=timedelta(seconds=settings.token_refresh_margin_seconds),
        timeout=settings.firestore_timeout_seconds,
    )
    return FirestoreClient(
        credential.project_id,
        manager,
        http_client=http_client,
        timeout=settings.firestore_timeout_seconds,
    )


def init_firestore() -> bool:
    """Initialize the process-wide Firestore client.

    Safe to call when Firestore is not configured (no-op). Idempotent if
    already initialized. On invalid credentials or any configuration
    error, logs the exception and returns False so the app can start
    without Firestore.

    Returns:
        True if Firestore was initialized, False if disabled or on error.
    """
    global _firestore_client
    if _firestore_client is not None:
        return True
    try:
        client = build_firestore_client(get_settings())
    except (StaccatoException, ValueError):
        logger.exception("Firestore initialization failed")
        return False
    if client is None:
        logger.warning("Firestore credentials not configured; client disabled")
        return False
    _firestore_client = client
    logger.info("Firestore client initialized for project %s", client.project_id)
    return True


def get_firestore_client() -> FirestoreClient | None:
    """Return the Firestore client, or None if not configured.

    Operations (all async):
    - await db.create_document(collection, data, document_id=None)
    - await db.get_document(collection, id) -> dict | None
    - await db.update_document(collection, id, data)
    - await db.delete_document(collection, id)
    - await db.document_exists(collection, id) -> bool
    - await db.query_documents(collection, where={...}, limit=..., offset=...)
    """
    return _firestore_client


async def close_firestore() -> None:
    """Close the Firestore client's HTTP connection pool. Call from app shutdown."""
    global _firestore_client
    if _firestore_client is not None:
        await _firestore_client.aclose()
        _firestore_client = None
        logger.info("Firestore HTTP client closed")
