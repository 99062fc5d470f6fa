"""Firestore collection names (schema-in-code).

Firestore has no DDL or migrations. Collections are created automatically
when you first write a document. Use these constants so collection names
stay consistent across repositories.

Example:
    from staccato_api.infrastructure.firebase.client import get_firestore_client
    from staccato_api.infrastructure.firebase.collections import COLLECTION_FAMILIES

    db = get_firestore_client()
    if db:
        family = await db.get_document(COLLECTION_FAMILIES, family_id)
"""

COLLECTION_USERS = "users"
COLLECTION_FAMILIES = "families"
COLLECTION_FAMILY_INVITATIONS = "family_invitations"
