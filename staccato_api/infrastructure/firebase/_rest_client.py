"""Thin Firestore REST API client (no firebase-admin).

Authenticates through CredentialManager (service account JWT exchanged
for an OAuth2 token) and talks to Firestore REST v1 directly. All HTTP
calls use httpx.AsyncClient so they do not block the event loop.

Returned documents are plain dicts with the document ID merged in as
"id"; values are converted by _rest_encoding.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from staccato_api.domain.exceptions import ValidationException
from staccato_api.infrastructure.exceptions import (
    AuthenticationError,
    ConflictError,
    QuotaExceededError,
    SerializationError,
    ServiceError,
    TransientError,
)
from staccato_api.infrastructure.firebase._rest_encoding import (
    DocumentRecord,
    decode_document,
    encode_document,
)
from staccato_api.infrastructure.firebase._rest_query import (
    QuerySpec,
    build_query,
    decode_results,
)
from staccato_api.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"

_DEFAULT_TIMEOUT = 30.0


class TokenProvider(Protocol):
    """What FirestoreClient needs from a credential manager."""

    async def get_token(self) -> str: ...

    def invalidate(self) -> None: ...

    async def aclose(self) -> None: ...


def _segment(value: str, name: str) -> str:
    if not value:
        raise ValidationException(f"{name} must not be empty", field=name)
    return quote(value, safe="")


def _raise_for_status(resp: httpx.Response, action: str) -> None:
    """Translate a non-2xx Firestore response into a typed error."""
    if resp.is_success:
        return
    status = resp.status_code
    body = resp.text
    message = f"Failed to {action}: {status}"
    if status == 401:
        raise AuthenticationError(message, status_code=status, body=body)
    if status == 409:
        raise ConflictError(message, status_code=status, body=body)
    if status == 429:
        raise QuotaExceededError(message, status_code=status, body=body)
    if status >= 500:
        raise TransientError(message, status_code=status, body=body)
    raise ServiceError(message, status_code=status, body=body)


def _json(resp: httpx.Response, action: str) -> Any:
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError as e:
        raise SerializationError(f"Invalid JSON from Firestore ({action})") from e


class FirestoreClient:
    """Firestore client using the REST API.

    Args:
        project_id: Google Cloud project that owns the database.
        credentials: Token source (CredentialManager or the emulator one).
        http_client: Optional shared httpx.AsyncClient; not closed by aclose().
        timeout: Default per-request timeout in seconds.
        base_url: API root; defaults to production, or http://<host>/v1
            for the emulator.

    Usage:
        async with FirestoreClient(project_id, manager) as db:
            user = await db.create_document("users", {"displayName": "Ada"})
            same = await db.get_document("users", user["id"])
    """

    def __init__(
        self,
        project_id: str,
        credentials: TokenProvider,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        base_url: str | None = None,
    ) -> None:
        self._project_id = project_id
        self._credentials = credentials
        self._timeout = timeout
        root = (base_url or FIRESTORE_BASE_URL).rstrip("/")
        self._documents_url = f"{root}/projects/{project_id}/databases/(default)/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def documents_url(self) -> str:
        return self._documents_url

    async def __aenter__(self) -> "FirestoreClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()
        await self._credentials.aclose()

    def _collection_url(self, collection: str) -> str:
        return f"{self._documents_url}/{_segment(collection, 'collection')}"

    def _document_url(self, collection: str, document_id: str) -> str:
        return f"{self._collection_url(collection)}/{_segment(document_id, 'document_id')}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        action: str,
        body: dict | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send an authenticated request; timeouts and transport errors become TransientError."""
        token = await self._credentials.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        try:
            resp = await self._http.request(
                method,
                url,
                headers=headers,
                json=body,
                params=params,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Firestore %s timed out", action)
            raise TransientError(f"Timed out while trying to {action}") from e
        except httpx.HTTPError as e:
            logger.warning("Firestore %s failed: %s", action, e)
            raise TransientError(f"Failed to {action}: {e}") from e
        if resp.status_code == 401:
            # token revoked or clock skew; make the next call fetch a new one
            self._credentials.invalidate()
        return resp

    async def create_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        document_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> DocumentRecord:
        """Create a document; Firestore generates the ID when document_id is None.

        Returns:
            The stored record including its "id".

        Raises:
            ConflictError: A document with document_id already exists; it is
                left unchanged.
        """
        logger.debug("Creating document in %s (id=%s)", collection, document_id)
        params = None
        if document_id is not None:
            _segment(document_id, "document_id")
            params = {"documentId": document_id}
        resp = await self._request(
            "POST",
            self._collection_url(collection),
            action="create document",
            body=encode_document(data),
            params=params,
            timeout=timeout,
        )
        if resp.status_code == 409:
            logger.info("Document %s/%s already exists", collection, document_id)
        _raise_for_status(resp, "create document")
        return decode_document(_json(resp, "create document"))

    async def get_document(
        self,
        collection: str,
        document_id: str,
        *,
        timeout: float | None = None,
    ) -> DocumentRecord | None:
        """Fetch a document; returns None if not found."""
        logger.debug("Getting document %s/%s", collection, document_id)
        resp = await self._request(
            "GET",
            self._document_url(collection, document_id),
            action="get document",
            timeout=timeout,
        )
        if resp.status_code == 404:
            return None
        _raise_for_status(resp, "get document")
        return decode_document(_json(resp, "get document"))

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> DocumentRecord:
        """Overwrite an existing document with data.

        No update mask is sent, so fields absent from data are removed.
        The currentDocument.exists precondition stops PATCH from creating
        a missing document.

        Raises:
            ServiceError: The document does not exist (404) or the update
                was rejected.
        """
        logger.debug("Updating document %s/%s", collection, document_id)
        resp = await self._request(
            "PATCH",
            self._document_url(collection, document_id),
            action="update document",
            body=encode_document(data),
            params={"currentDocument.exists": "true"},
            timeout=timeout,
        )
        _raise_for_status(resp, "update document")
        return decode_document(_json(resp, "update document"))

    async def delete_document(
        self,
        collection: str,
        document_id: str,
        *,
        timeout: float | None = None,
    ) -> None:
        """Delete the document. Idempotent if document is already missing (404)."""
        logger.debug("Deleting document %s/%s", collection, document_id)
        resp = await self._request(
            "DELETE",
            self._document_url(collection, document_id),
            action="delete document",
            timeout=timeout,
        )
        if resp.status_code == 404:
            return
        _raise_for_status(resp, "delete document")

    async def document_exists(
        self,
        collection: str,
        document_id: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Return True if the document exists."""
        return await self.get_document(collection, document_id, timeout=timeout) is not None

    async def query_documents(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        *,
        timeout: float | None = None,
    ) -> list[DocumentRecord]:
        """Return documents whose fields equal every value in where.

        Results follow Firestore's default document-name order. Paging with
        offset is only stable while nobody writes to the collection between
        calls.
        """
        _segment(collection, "collection")
        spec = QuerySpec.from_where(collection, where, limit=limit, offset=offset)
        logger.debug(
            "Querying %s on fields=%s limit=%s offset=%s",
            collection,
            [field for field, _ in spec.constraints],
            limit,
            offset,
        )
        resp = await self._request(
            "POST",
            f"{self._documents_url}:runQuery",
            action="query documents",
            body=build_query(spec),
            timeout=timeout,
        )
        _raise_for_status(resp, "query documents")
        documents = list(decode_results(_json(resp, "query documents")))
        logger.debug("Query on %s returned %d documents", collection, len(documents))
        return documents
