"""Pytest configuration and fixtures for staccato-api.

HTTP never leaves the process: the token endpoint and Firestore are served
by tests.fakes.FakeFirestore through httpx.MockTransport. Signing uses a
throwaway RSA key generated once per session.
"""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import AsyncClient

from staccato_api.core.config import get_settings
from staccato_api.infrastructure.firebase._rest_client import FirestoreClient
from staccato_api.infrastructure.firebase.credentials import (
    CredentialManager,
    ServiceAccountCredential,
)
from tests.fakes import FakeClock, FakeFirestore

TEST_PROJECT_ID = "test-project"
TEST_CLIENT_EMAIL = "api-server@test-project.iam.gserviceaccount.com"


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for a service account key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def public_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    return rsa_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture
def service_account(private_key_pem: str) -> ServiceAccountCredential:
    return ServiceAccountCredential(
        project_id=TEST_PROJECT_ID,
        client_email=TEST_CLIENT_EMAIL,
        private_key=private_key_pem,
        private_key_id="key-1",
    )


@pytest.fixture
def fake_firestore() -> FakeFirestore:
    return FakeFirestore(project_id=TEST_PROJECT_ID)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def http_client(fake_firestore: FakeFirestore) -> AsyncClient:
    """httpx client whose transport is the in-memory fake."""
    async with AsyncClient(transport=fake_firestore.transport()) as client:
        yield client


@pytest.fixture
def credential_manager(
    service_account: ServiceAccountCredential,
    http_client: AsyncClient,
    clock: FakeClock,
) -> CredentialManager:
    return CredentialManager(service_account, http_client=http_client, clock=clock)


@pytest.fixture
def firestore_client(
    credential_manager: CredentialManager, http_client: AsyncClient
) -> FirestoreClient:
    return FirestoreClient(TEST_PROJECT_ID, credential_manager, http_client=http_client)


@pytest.fixture
def clean_settings(monkeypatch: pytest.MonkeyPatch):
    """Clear Firebase env vars and the settings cache around a test."""
    for name in (
        "ENVIRONMENT",
        "LOG_LEVEL",
        "DEBUG",
        "FIREBASE_PROJECT_ID",
        "FIREBASE_CLIENT_EMAIL",
        "FIREBASE_PRIVATE_KEY",
        "FIREBASE_PRIVATE_KEY_ID",
        "FIREBASE_TOKEN_URI",
        "FIREBASE_SERVICE_ACCOUNT_KEY",
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "USE_FIREBASE_EMULATOR",
        "FIRESTORE_EMULATOR_HOST",
        "FIRESTORE_TIMEOUT_SECONDS",
        "TOKEN_REFRESH_MARGIN_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
