"""Encode/decode Python values to/from Firestore REST API value envelopes.

Firestore wraps every field value in a single-key object naming its type,
e.g. {"integerValue": "42"}. Each envelope shape is modeled as one frozen
dataclass below (the FirestoreValue union); from_python/parse_value build
them and to_python/to_wire take them apart.

Round trip: decode_value(encode_value(v)) == v for every supported v,
with ints kept as int and floats as float. Tuples come back as lists.
"""

from __future__ import annotations

import base64
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

from staccato_api.infrastructure.exceptions import SerializationError

# Synthesized on read from the resource name, never written as a field.
DOCUMENT_ID_FIELD = "id"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})$"
)

DocumentRecord = dict[str, Any]


@dataclass(frozen=True)
class Reference:
    """Plain value for a Firestore reference: a full document resource path."""

    path: str


@dataclass(frozen=True)
class GeoPoint:
    """Plain value for a Firestore geo point."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class NullValue:
    def to_wire(self) -> dict:
        return {"nullValue": None}

    def to_python(self) -> None:
        return None


@dataclass(frozen=True)
class BooleanValue:
    value: bool

    def to_wire(self) -> dict:
        return {"booleanValue": self.value}

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True)
class IntegerValue:
    value: int

    def to_wire(self) -> dict:
        # int64 travels as a decimal string in the JSON mapping
        return {"integerValue": str(self.value)}

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True)
class DoubleValue:
    value: float

    def to_wire(self) -> dict:
        if math.isnan(self.value):
            return {"doubleValue": "NaN"}
        if math.isinf(self.value):
            return {"doubleValue": "Infinity" if self.value > 0 else "-Infinity"}
        return {"doubleValue": self.value}

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True)
class StringValue:
    value: str

    def to_wire(self) -> dict:
        return {"stringValue": self.value}

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class TimestampValue:
    value: datetime  # always UTC-aware

    def to_wire(self) -> dict:
        # strftime does not zero-pad years below 1000 on every platform
        dt = self.value
        return {
            "timestampValue": f"{dt.year:04d}-{dt:%m-%dT%H:%M:%S}.{dt.microsecond:06d}Z"
        }

    def to_python(self) -> datetime:
        return self.value


@dataclass(frozen=True)
class BytesValue:
    value: bytes

    def to_wire(self) -> dict:
        return {"bytesValue": base64.standard_b64encode(self.value).decode("ascii")}

    def to_python(self) -> bytes:
        return self.value


@dataclass(frozen=True)
class ReferenceValue:
    value: Reference

    def to_wire(self) -> dict:
        return {"referenceValue": self.value.path}

    def to_python(self) -> Reference:
        return self.value


@dataclass(frozen=True)
class GeoPointValue:
    value: GeoPoint

    def to_wire(self) -> dict:
        return {
            "geoPointValue": {
                "latitude": self.value.latitude,
                "longitude": self.value.longitude,
            }
        }

    def to_python(self) -> GeoPoint:
        return self.value


@dataclass(frozen=True)
class ArrayValue:
    values: tuple[FirestoreValue, ...]

    def to_wire(self) -> dict:
        return {"arrayValue": {"values": [v.to_wire() for v in self.values]}}

    def to_python(self) -> list:
        return [v.to_python() for v in self.values]


@dataclass(frozen=True)
class MapValue:
    fields: tuple[tuple[str, FirestoreValue], ...]

    def to_wire(self) -> dict:
        return {"mapValue": {"fields": {k: v.to_wire() for k, v in self.fields}}}

    def to_python(self) -> dict:
        return {k: v.to_python() for k, v in self.fields}


FirestoreValue = (
    NullValue
    | BooleanValue
    | IntegerValue
    | DoubleValue
    | StringValue
    | TimestampValue
    | BytesValue
    | ReferenceValue
    | GeoPointValue
    | ArrayValue
    | MapValue
)


def from_python(v: Any) -> FirestoreValue:
    """Build the FirestoreValue for a plain Python value.

    Raises:
        SerializationError: If the type has no Firestore representation,
            an int is outside int64, a datetime is naive, or a mapping
            has a non-string key.
    """
    if v is None:
        return NullValue()
    if isinstance(v, bool):
        return BooleanValue(v)
    if isinstance(v, int):
        if not _INT64_MIN <= v <= _INT64_MAX:
            raise SerializationError(
                f"Integer out of 64-bit range: {v}", value_type="int"
            )
        return IntegerValue(v)
    if isinstance(v, float):
        return DoubleValue(v)
    if isinstance(v, str):
        return StringValue(v)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            raise SerializationError(
                "naive datetime values are not supported; attach a timezone",
                value_type="datetime",
            )
        return TimestampValue(v.astimezone(UTC))
    if isinstance(v, date):
        raise SerializationError(
            "date values are not supported; pass a datetime", value_type="date"
        )
    if isinstance(v, (bytes, bytearray)):
        return BytesValue(bytes(v))
    if isinstance(v, Reference):
        return ReferenceValue(v)
    if isinstance(v, GeoPoint):
        return GeoPointValue(v)
    if isinstance(v, (list, tuple)):
        return ArrayValue(tuple(from_python(x) for x in v))
    if isinstance(v, Mapping):
        fields = []
        for k, x in v.items():
            if not isinstance(k, str):
                raise SerializationError(
                    f"Map keys must be strings, got {type(k).__name__}",
                    value_type=type(k).__name__,
                )
            fields.append((k, from_python(x)))
        return MapValue(tuple(fields))
    raise SerializationError(
        f"Unsupported Firestore value type: {type(v).__name__}",
        value_type=type(v).__name__,
    )


def _parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str):
        raise SerializationError("timestampValue must be a string")
    m = _TIMESTAMP_RE.match(raw)
    if m is None:
        raise SerializationError(f"Malformed timestampValue: {raw!r}")
    # Firestore sends up to nanoseconds; datetime holds microseconds.
    frac = (m.group("frac") or "")[:6].ljust(6, "0")
    tz = "+00:00" if m.group("tz") == "Z" else m.group("tz")
    try:
        parsed = datetime.fromisoformat(f"{m.group('base')}.{frac}{tz}")
    except ValueError as e:
        raise SerializationError(f"Malformed timestampValue: {raw!r}") from e
    return parsed.astimezone(UTC)


def _parse_double(raw: Any) -> float:
    if isinstance(raw, bool):
        raise SerializationError("doubleValue must be a number")
    if isinstance(raw, (int, float)):
        return float(raw)
    if raw in ("NaN", "Infinity", "-Infinity"):
        return float(raw)
    raise SerializationError(f"Malformed doubleValue: {raw!r}")


def _parse_integer(raw: Any) -> int:
    if isinstance(raw, bool):
        raise SerializationError("integerValue must be a decimal string")
    if isinstance(raw, int):
        return raw
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Malformed integerValue: {raw!r}") from e


def parse_value(obj: Any) -> FirestoreValue:
    """Build the FirestoreValue for a wire envelope.

    Raises:
        SerializationError: If obj is not a single-key envelope of a known
            type, or its payload is malformed.
    """
    if not isinstance(obj, dict) or len(obj) != 1:
        raise SerializationError(f"Expected a single-key Firestore value, got: {obj!r}")
    kind, raw = next(iter(obj.items()))

    if kind == "nullValue":
        return NullValue()
    if kind == "booleanValue":
        if not isinstance(raw, bool):
            raise SerializationError(f"Malformed booleanValue: {raw!r}")
        return BooleanValue(raw)
    if kind == "integerValue":
        return IntegerValue(_parse_integer(raw))
    if kind == "doubleValue":
        return DoubleValue(_parse_double(raw))
    if kind == "stringValue":
        if not isinstance(raw, str):
            raise SerializationError(f"Malformed stringValue: {raw!r}")
        return StringValue(raw)
    if kind == "timestampValue":
        return TimestampValue(_parse_timestamp(raw))
    if kind == "bytesValue":
        try:
            return BytesValue(base64.standard_b64decode(raw))
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Malformed bytesValue: {raw!r}") from e
    if kind == "referenceValue":
        if not isinstance(raw, str):
            raise SerializationError(f"Malformed referenceValue: {raw!r}")
        return ReferenceValue(Reference(raw))
    if kind == "geoPointValue":
        if not isinstance(raw, dict):
            raise SerializationError(f"Malformed geoPointValue: {raw!r}")
        # proto3 JSON omits zero-valued coordinates
        return GeoPointValue(
            GeoPoint(
                _parse_double(raw.get("latitude", 0.0)),
                _parse_double(raw.get("longitude", 0.0)),
            )
        )
    if kind == "arrayValue":
        if raw is not None and not isinstance(raw, dict):
            raise SerializationError(f"Malformed arrayValue: {raw!r}")
        vals = (raw or {}).get("values") or []
        return ArrayValue(tuple(parse_value(x) for x in vals))
    if kind == "mapValue":
        if raw is not None and not isinstance(raw, dict):
            raise SerializationError(f"Malformed mapValue: {raw!r}")
        fields = (raw or {}).get("fields") or {}
        return MapValue(tuple((k, parse_value(x)) for k, x in fields.items()))
    raise SerializationError(f"Unknown Firestore value type: {kind!r}", value_type=kind)


def encode_value(v: Any) -> dict:
    """Convert a plain Python value to its Firestore REST value envelope."""
    return from_python(v).to_wire()


def decode_value(obj: Any) -> Any:
    """Convert a Firestore REST value envelope to a plain Python value."""
    return parse_value(obj).to_python()


def encode_document(data: Mapping[str, Any]) -> dict:
    """Convert a Python mapping to a Firestore REST Document body.

    The synthesized "id" key is skipped; the ID lives in the resource name.
    """
    return {
        "fields": {
            k: encode_value(v) for k, v in data.items() if k != DOCUMENT_ID_FIELD
        }
    }


def document_id_from_name(name: str) -> str:
    """Return the last path segment of a document resource name."""
    return name.rsplit("/", 1)[-1]


def decode_document(document: Mapping[str, Any]) -> DocumentRecord:
    """Convert a Firestore REST Document to a plain record with "id" merged in."""
    record: DocumentRecord = {
        k: decode_value(v) for k, v in (document.get("fields") or {}).items()
    }
    name = document.get("name")
    if name:
        record[DOCUMENT_ID_FIELD] = document_id_from_name(name)
    return record
