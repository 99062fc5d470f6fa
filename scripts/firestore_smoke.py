"""Manual end-to-end check of the Firestore REST client.

Runs create / get / update / query / delete against a throwaway
collection using the credentials in the environment or .env (or the
emulator when USE_FIREBASE_EMULATOR=true), then cleans up.

Usage:
    uv run python -m scripts.firestore_smoke [collection_prefix]
"""

import asyncio
import sys
import time

from staccato_api.core.config import get_settings
from staccato_api.domain.exceptions import StaccatoException
from staccato_api.infrastructure.exceptions import ConflictError
from staccato_api.infrastructure.firebase.client import build_firestore_client
from staccato_api.infrastructure.firebase.collections import COLLECTION_USERS
from staccato_api.shared.telemetry.logging import setup_logging
from staccato_api.shared.utils.datetime import utc_now


async def main() -> None:
    """Exercise every client operation once; exit 1 on the first failure."""
    setup_logging()
    prefix = sys.argv[1] if len(sys.argv) > 1 else f"smoke_{COLLECTION_USERS}"
    collection = f"{prefix}_{int(time.time() * 1000)}"

    client = build_firestore_client(get_settings())
    if client is None:
        print("Firestore credentials not configured", file=sys.stderr)
        sys.exit(1)

    created_ids: list[str] = []
    async with client:
        try:
            auto = await client.create_document(
                collection,
                {"displayName": "Smoke User", "familyId": "family_123", "createdAt": utc_now()},
            )
            created_ids.append(auto["id"])
            print(f"Created document with generated ID: {auto['id']}")

            explicit = await client.create_document(
                collection,
                {"displayName": "Explicit", "familyId": "family_123", "age": 7},
                document_id="user_smoke_explicit",
            )
            created_ids.append(explicit["id"])
            print(f"Created document with explicit ID: {explicit['id']}")

            try:
                await client.create_document(
                    collection, {"displayName": "Dup"}, document_id="user_smoke_explicit"
                )
                print("Duplicate create did not raise ConflictError", file=sys.stderr)
                sys.exit(1)
            except ConflictError:
                print("Duplicate create raised ConflictError")

            fetched = await client.get_document(collection, explicit["id"])
            print(f"Fetched: {fetched}")

            missing = await client.get_document(collection, "does_not_exist")
            print(f"Missing document returned: {missing}")

            updated = await client.update_document(
                collection,
                explicit["id"],
                {"displayName": "Explicit (updated)", "familyId": "family_123"},
            )
            print(f"Updated: {updated}")

            matches = await client.query_documents(
                collection, where={"familyId": "family_123"}, limit=10
            )
            print(f"Query matched {len(matches)} documents")
        except StaccatoException as e:
            print(f"Smoke check failed: {e.error_code}: {e.message}", file=sys.stderr)
            sys.exit(1)
        finally:
            for doc_id in created_ids:
                await client.delete_document(collection, doc_id)
            print(f"Deleted {len(created_ids)} documents from {collection}")


if __name__ == "__main__":
    asyncio.run(main())
