"""Structured query bodies for the Firestore REST :runQuery endpoint.

Only equality filters are supported; several are ANDed together. A None
or NaN value becomes an IS_NULL or IS_NAN unary filter.
Offset is applied by the server before limit.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from staccato_api.infrastructure.exceptions import SerializationError
from staccato_api.infrastructure.firebase._rest_encoding import (
    DocumentRecord,
    decode_document,
    encode_value,
)


@dataclass(frozen=True)
class QuerySpec:
    """Collection, ordered equality constraints, optional limit and offset."""

    collection: str
    constraints: tuple[tuple[str, Any], ...] = ()
    limit: int | None = None
    offset: int | None = None

    @classmethod
    def from_where(
        cls,
        collection: str,
        where: Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> "QuerySpec":
        """Build a query from a field -> value mapping (insertion order kept)."""
        return cls(
            collection=collection,
            constraints=tuple((where or {}).items()),
            limit=limit,
            offset=offset,
        )


def _field_filter(field: str, value: Any) -> dict:
    # null and NaN never compare EQUAL on the server; they need unary ops
    if value is None:
        return _unary_filter(field, "IS_NULL")
    if isinstance(value, float) and math.isnan(value):
        return _unary_filter(field, "IS_NAN")
    return {
        "fieldFilter": {
            "field": {"fieldPath": field},
            "op": "EQUAL",
            "value": encode_value(value),
        }
    }


def _unary_filter(field: str, op: str) -> dict:
    return {"unaryFilter": {"field": {"fieldPath": field}, "op": op}}


def build_query(spec: QuerySpec) -> dict:
    """Return the :runQuery request body for spec.

    A single constraint is sent as a bare field or unary filter; two or
    more are wrapped in an AND compositeFilter. limit and offset are sent whenever
    they are not None, so a limit of 0 reaches the server as-is.
    """
    structured: dict[str, Any] = {
        "from": [{"collectionId": spec.collection}],
    }
    filters = [_field_filter(f, v) for f, v in spec.constraints]
    if len(filters) == 1:
        structured["where"] = filters[0]
    elif filters:
        structured["where"] = {
            "compositeFilter": {"op": "AND", "filters": filters}
        }
    if spec.offset is not None:
        structured["offset"] = spec.offset
    if spec.limit is not None:
        structured["limit"] = spec.limit
    return {"structuredQuery": structured}


def decode_results(response: Any) -> Iterator[DocumentRecord]:
    """Yield one record per matched document in a :runQuery response.

    The endpoint answers with a JSON array; entries without a "document"
    key only carry readTime/skippedResults and are ignored.
    """
    if not isinstance(response, list):
        raise SerializationError(
            f"Expected a JSON array from runQuery, got {type(response).__name__}"
        )
    for item in response:
        if not isinstance(item, dict) or "document" not in item:
            continue
        yield decode_document(item["document"])
