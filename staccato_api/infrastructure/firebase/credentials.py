"""Service account credentials and OAuth2 access tokens for Firestore.

CredentialManager signs an RS256 JWT assertion with the service account
key (python-jose), exchanges it at the Google token endpoint through the
JWT-bearer grant, and caches the resulting access token until it comes
within refresh_margin of expiry.

Refresh is single-flight: concurrent callers that find the cache stale
share one in-flight refresh task and all receive its token or its error.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import httpx
from jose import JOSEError, jwt

from staccato_api.domain.exceptions import ConfigurationException
from staccato_api.infrastructure.exceptions import (
    AuthenticationError,
    TransientError,
)
from staccato_api.shared.telemetry.logging import get_logger
from staccato_api.shared.utils.datetime import to_epoch_seconds, utc_now

logger = get_logger(__name__)

FIRESTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Google rejects assertions valid for longer than one hour.
ASSERTION_LIFETIME = timedelta(hours=1)
DEFAULT_REFRESH_MARGIN = timedelta(seconds=60)

# Fixed bearer token the Firestore emulator accepts as an admin caller.
EMULATOR_TOKEN = "owner"


@dataclass(frozen=True)
class ServiceAccountCredential:
    """Identity of a Google service account. Loaded once, never mutated."""

    project_id: str
    client_email: str
    private_key: str
    private_key_id: str | None = None
    token_uri: str = GOOGLE_TOKEN_URI

    def __post_init__(self) -> None:
        # Keys pasted into env vars often carry literal "\n" sequences.
        object.__setattr__(self, "private_key", self.private_key.replace("\\n", "\n"))

    def __repr__(self) -> str:
        return (
            f"ServiceAccountCredential(project_id={self.project_id!r}, "
            f"client_email={self.client_email!r})"
        )

    @classmethod
    def from_service_account_info(
        cls, info: Mapping[str, Any]
    ) -> "ServiceAccountCredential":
        """Build from a parsed service account JSON key.

        Raises:
            ConfigurationException: If the key is not a JSON object, or
                project_id, client_email or private_key is missing.
        """
        if not isinstance(info, Mapping):
            raise ConfigurationException(
                f"Service account key must be a JSON object, got {type(info).__name__}",
                setting="firebase_service_account_key",
            )
        for key in ("project_id", "client_email", "private_key"):
            if not info.get(key):
                raise ConfigurationException(
                    f"Service account key is missing '{key}'", setting=key
                )
        return cls(
            project_id=info["project_id"],
            client_email=info["client_email"],
            private_key=info["private_key"],
            private_key_id=info.get("private_key_id"),
            token_uri=info.get("token_uri") or GOOGLE_TOKEN_URI,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "ServiceAccountCredential":
        """Build from a service account JSON key file."""
        resolved = Path(path).expanduser()
        if not resolved.is_file():
            raise ConfigurationException(
                f"Service account key file not found: {resolved}",
                setting="firebase_service_account_path",
            )
        try:
            with open(resolved, encoding="utf-8") as f:
                info = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationException(
                f"Service account key file is not valid JSON: {resolved}",
                setting="firebase_service_account_path",
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationException(
                f"Service account key file could not be read: {resolved}: {e}",
                setting="firebase_service_account_path",
            ) from e
        return cls.from_service_account_info(info)


@dataclass(frozen=True)
class AccessToken:
    """OAuth2 bearer token. Replaced wholesale on refresh."""

    token: str
    expires_at: datetime
    issued_at: datetime

    def __repr__(self) -> str:
        return f"AccessToken(expires_at={self.expires_at.isoformat()})"

    def remaining(self, now: datetime) -> timedelta:
        return self.expires_at - now

    def is_fresh(self, now: datetime, margin: timedelta) -> bool:
        """True while more than margin of lifetime is left."""
        return self.remaining(now) > margin


class CredentialManager:
    """Produces a currently-valid Firestore access token for every request.

    Args:
        credential: Service account identity and signing key.
        http_client: Optional shared httpx.AsyncClient; one is created (and
            owned) when omitted.
        refresh_margin: Tokens closer than this to expiry are refreshed.
        timeout: Seconds allowed for the token exchange.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        credential: ServiceAccountCredential,
        *,
        http_client: httpx.AsyncClient | None = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._credential = credential
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._refresh_margin = refresh_margin
        self._timeout = timeout
        self._clock = clock
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[AccessToken] | None = None

    @property
    def credential(self) -> ServiceAccountCredential:
        return self._credential

    @property
    def token(self) -> AccessToken | None:
        """Cached token (may be stale); None before the first refresh."""
        return self._token

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it."""
        if self._owns_http:
            await self._http.aclose()

    def invalidate(self) -> None:
        """Forget the cached token so the next call refreshes."""
        self._token = None

    async def get_token(self) -> str:
        """Return the bearer string of a valid access token."""
        return (await self.get_access_token()).token

    async def get_access_token(self) -> AccessToken:
        """Return a token with more than refresh_margin of lifetime left.

        Raises:
            AuthenticationError: Signing failed or the token endpoint
                answered non-2xx (status_code and body attached).
            TransientError: The token exchange timed out or failed in
                transport.
        """
        token = self._token
        if token is not None and token.is_fresh(self._clock(), self._refresh_margin):
            return token

        async with self._lock:
            token = self._token
            if token is not None and token.is_fresh(self._clock(), self._refresh_margin):
                return token
            if self._refresh_task is None:
                self._refresh_task = asyncio.create_task(self._refresh())
                self._refresh_task.add_done_callback(self._on_refresh_done)
            task = self._refresh_task

        # shield: a cancelled waiter must not cancel the refresh others share
        return await asyncio.shield(task)

    def _on_refresh_done(self, task: asyncio.Task[AccessToken]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # mark retrieved even if every waiter was cancelled
            task.exception()

    def _sign_assertion(self, now: datetime) -> str:
        claims = {
            "iss": self._credential.client_email,
            "sub": self._credential.client_email,
            "aud": self._credential.token_uri,
            "scope": FIRESTORE_SCOPE,
            "iat": to_epoch_seconds(now),
            "exp": to_epoch_seconds(now + ASSERTION_LIFETIME),
        }
        headers = (
            {"kid": self._credential.private_key_id}
            if self._credential.private_key_id
            else None
        )
        try:
            return jwt.encode(
                claims,
                self._credential.private_key,
                algorithm="RS256",
                headers=headers,
            )
        except (JOSEError, ValueError, TypeError) as e:
            raise AuthenticationError(
                f"Failed to sign service account assertion: {e}"
            ) from e

    async def _refresh(self) -> AccessToken:
        now = self._clock()
        assertion = await asyncio.to_thread(self._sign_assertion, now)
        logger.debug(
            "Requesting Firestore access token for %s", self._credential.client_email
        )
        try:
            resp = await self._http.post(
                self._credential.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Token exchange timed out after %ss", self._timeout)
            raise TransientError("Token exchange timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Token exchange failed: %s", e)
            raise TransientError(f"Token exchange failed: {e}") from e

        if not resp.is_success:
            logger.error("Token exchange rejected: %s", resp.status_code)
            raise AuthenticationError(
                f"Failed to generate access token: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            payload = resp.json()
            access_token = payload["access_token"]
            expires_in = int(payload["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(
                "Token endpoint returned an unexpected response",
                status_code=resp.status_code,
                body=resp.text,
            ) from e

        issued_at = self._clock()
        new_token = AccessToken(
            token=access_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
            issued_at=issued_at,
        )
        if not new_token.is_fresh(issued_at, self._refresh_margin):
            raise AuthenticationError(
                f"Token lifetime {expires_in}s does not exceed the refresh margin"
            )
        self._token = new_token
        logger.info("Firestore access token refreshed (expires in %ss)", expires_in)
        return new_token


class EmulatorCredentialManager:
    """Token source for the Firestore emulator: no signing, no network."""

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    async def aclose(self) -> None:
        return None

    def invalidate(self) -> None:
        return None

    async def get_token(self) -> str:
        return EMULATOR_TOKEN

    async def get_access_token(self) -> AccessToken:
        now = self._clock()
        return AccessToken(
            token=EMULATOR_TOKEN,
            expires_at=now + ASSERTION_LIFETIME,
            issued_at=now,
        )
