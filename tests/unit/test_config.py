"""Tests for Settings validation and Firestore client construction from settings."""

import json

import pytest
from pydantic import ValidationError

from staccato_api.core.config import Settings, get_settings
from staccato_api.domain.exceptions import ConfigurationException
from staccato_api.infrastructure.firebase import client as firebase_client
from staccato_api.infrastructure.firebase.client import (
    build_firestore_client,
    load_service_account,
)
from staccato_api.infrastructure.firebase.credentials import (
    CredentialManager,
    EmulatorCredentialManager,
)


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


def test_defaults(clean_settings) -> None:
    settings = _settings()
    assert settings.environment == "development"
    assert settings.is_development
    assert not settings.is_production
    assert settings.firestore_timeout_seconds == 30.0
    assert settings.token_refresh_margin_seconds == 60
    assert settings.firebase_token_uri == "https://oauth2.googleapis.com/token"


def test_log_level_is_normalized(clean_settings) -> None:
    assert _settings(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"environment": "qa"},
        {"log_level": "TRACE"},
        {"use_firebase_emulator": True},
        {"firestore_timeout_seconds": 0},
        {"token_refresh_margin_seconds": -1},
    ],
)
def test_invalid_settings_rejected(clean_settings, kwargs) -> None:
    with pytest.raises(ValidationError):
        _settings(**kwargs)


def test_settings_read_from_environment(clean_settings) -> None:
    clean_settings.setenv("FIREBASE_PROJECT_ID", "env-project")
    clean_settings.setenv("ENVIRONMENT", "production")
    settings = get_settings()
    assert settings.firebase_project_id == "env-project"
    assert settings.is_production


def test_load_service_account_from_individual_fields(clean_settings, private_key_pem) -> None:
    settings = _settings(
        firebase_project_id="staccato",
        firebase_client_email="svc@staccato.iam.gserviceaccount.com",
        firebase_private_key=private_key_pem.replace("\n", "\\n"),
        firebase_private_key_id="kid-9",
    )
    cred = load_service_account(settings)
    assert cred is not None
    assert cred.project_id == "staccato"
    assert cred.private_key == private_key_pem
    assert cred.private_key_id == "kid-9"


def test_load_service_account_from_json_key(clean_settings, private_key_pem) -> None:
    key = {
        "project_id": "json-project",
        "client_email": "svc@json-project.iam.gserviceaccount.com",
        "private_key": private_key_pem,
    }
    cred = load_service_account(_settings(firebase_service_account_key=json.dumps(key)))
    assert cred is not None
    assert cred.project_id == "json-project"


def test_load_service_account_invalid_json(clean_settings) -> None:
    with pytest.raises(ConfigurationException):
        load_service_account(_settings(firebase_service_account_key="{oops"))


def test_load_service_account_from_path(clean_settings, tmp_path, private_key_pem) -> None:
    key_file = tmp_path / "svc.json"
    key_file.write_text(
        json.dumps(
            {
                "project_id": "file-project",
                "client_email": "svc@file-project.iam.gserviceaccount.com",
                "private_key": private_key_pem,
            }
        )
    )
    cred = load_service_account(_settings(firebase_service_account_path=str(key_file)))
    assert cred is not None
    assert cred.project_id == "file-project"


def test_load_service_account_unconfigured(clean_settings) -> None:
    assert load_service_account(_settings()) is None
    assert build_firestore_client(_settings()) is None


async def test_build_client_with_service_account(clean_settings, private_key_pem) -> None:
    settings = _settings(
        firebase_project_id="staccato",
        firebase_client_email="svc@staccato.iam.gserviceaccount.com",
        firebase_private_key=private_key_pem,
        token_refresh_margin_seconds=120,
    )
    client = build_firestore_client(settings)
    assert client is not None
    try:
        assert isinstance(client._credentials, CredentialManager)
        assert client.documents_url == (
            "https://firestore.googleapis.com/v1/projects/staccato/databases/(default)/documents"
        )
    finally:
        await client.aclose()


async def test_build_client_for_emulator(clean_settings) -> None:
    settings = _settings(
        firebase_project_id="demo-staccato",
        use_firebase_emulator=True,
        firestore_emulator_host="localhost:8081",
    )
    client = build_firestore_client(settings)
    assert client is not None
    try:
        assert isinstance(client._credentials, EmulatorCredentialManager)
        assert client.documents_url.startswith(
            "http://localhost:8081/v1/projects/demo-staccato/"
        )
    finally:
        await client.aclose()


def test_emulator_requires_project_id(clean_settings) -> None:
    settings = _settings(use_firebase_emulator=True, firestore_emulator_host="localhost:8081")
    with pytest.raises(ConfigurationException):
        build_firestore_client(settings)


async def test_init_firestore_lifecycle(clean_settings, private_key_pem) -> None:
    """init is a no-op without credentials, idempotent once configured, and close clears it."""
    assert firebase_client.init_firestore() is False
    assert firebase_client.get_firestore_client() is None

    clean_settings.setenv("FIREBASE_PROJECT_ID", "staccato")
    clean_settings.setenv("FIREBASE_CLIENT_EMAIL", "svc@staccato.iam.gserviceaccount.com")
    clean_settings.setenv("FIREBASE_PRIVATE_KEY", private_key_pem.replace("\n", "\\n"))
    get_settings.cache_clear()

    assert firebase_client.init_firestore() is True
    first = firebase_client.get_firestore_client()
    assert first is not None
    assert firebase_client.init_firestore() is True
    assert firebase_client.get_firestore_client() is first

    await firebase_client.close_firestore()
    assert firebase_client.get_firestore_client() is None


def test_init_firestore_returns_false_on_bad_config(clean_settings) -> None:
    clean_settings.setenv("FIREBASE_SERVICE_ACCOUNT_KEY", "not json")
    assert firebase_client.init_firestore() is False
    assert firebase_client.get_firestore_client() is None


def test_init_firestore_returns_false_on_non_object_key_file(clean_settings, tmp_path) -> None:
    key_file = tmp_path / "svc.json"
    key_file.write_text(json.dumps(["not", "an", "object"]))
    clean_settings.setenv("FIREBASE_SERVICE_ACCOUNT_PATH", str(key_file))
    assert firebase_client.init_firestore() is False
    assert firebase_client.get_firestore_client() is None


def test_load_service_account_rejects_non_object_json_key(clean_settings) -> None:
    with pytest.raises(ConfigurationException, match="JSON object"):
        load_service_account(_settings(firebase_service_account_key="[]"))
