"""
Response shape parsing for the portfolio API.

The pie listing has been observed in more than one layout. Each layout is a
self-contained ListingShape; parse_listing tries them in order and falls
through to the next on SchemaError:

1. ArrayShape         [{"id": 17, "cash": ...}, ...]
2. IdMapShape         {"17": {"cash": ...}, ...}
3. FlattenedMapShape  {"17.cash": 1.0, "17.result.priceAvgValue": 2.0, ...}

Wire pie object:
{
    "id": 17,
    "cash": 0.52,
    "dividendDetails": {"gained": 1.2, "reinvested": 1.0, "inCash": 0.2},
    "result": {
        "priceAvgInvestedValue": 100.0,
        "priceAvgValue": 110.0,
        "priceAvgResult": 10.0,
        "priceAvgResultCoef": 0.1
    },
    "progress": 0.4,
    "status": "AHEAD"
}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import orjson

from pietracker.errors.errors import BusinessError, SchemaError
from pietracker.types.types import DividendDetails, PieMeta, RawPie, ResultDetails

logger = logging.getLogger(__name__)

# Keys that only show up in error envelopes, never in a pie listing
ERROR_MARKER_KEYS = frozenset({"code", "error", "errors", "errorMessage", "message"})

RAW_BODY_EXCERPT = 500

MIN_PIE_ID = -(2**63)
MAX_PIE_ID = 2**63 - 1


def excerpt(raw_body: str, limit: int = RAW_BODY_EXCERPT) -> str:
    if len(raw_body) <= limit:
        return raw_body
    return raw_body[:limit] + "..."


def decode_body(raw: bytes | str) -> Any:
    """Decode a JSON body, raising SchemaError for anything that is not JSON."""
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        text = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else raw
        raise SchemaError(f"Body is not valid JSON: {e}", raw_body=text) from e


def _safe_float(value: Any, field_name: str, default: float = 0.0) -> float:
    """Convert a wire value to float; null and absent map to ``default``."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise SchemaError(f"Invalid float value for {field_name}: {value}", expected_shape="float")
    try:
        if isinstance(value, float):
            return value
        return float(value)
    except (ValueError, TypeError) as e:
        raise SchemaError(
            f"Invalid float value for {field_name}: {value}",
            expected_shape="float",
        ) from e


def _optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    return _safe_float(value, field_name)


def _safe_id(value: Any) -> int:
    if isinstance(value, bool):
        raise SchemaError(f"Invalid pie id: {value}", expected_shape="int")
    try:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError("fractional id")
        pie_id = int(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise SchemaError(f"Invalid pie id: {value!r}", expected_shape="int") from e
    # Ids must survive a round trip through the state file
    if not MIN_PIE_ID <= pie_id <= MAX_PIE_ID:
        raise SchemaError(f"Pie id out of 64-bit range: {value!r}", expected_shape="int")
    return pie_id


def _sub_object(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SchemaError(f"'{key}' must be an object, got {type(value).__name__}")
    return value


def raw_pie_from_wire(obj: Any) -> RawPie:
    """Build a RawPie from one wire pie object."""
    if not isinstance(obj, dict):
        raise SchemaError(f"Pie entry must be an object, got {type(obj).__name__}")
    if "id" not in obj:
        raise SchemaError("Pie entry has no 'id'", expected_shape="pie")

    pie_id = _safe_id(obj["id"])
    dividend = _sub_object(obj, "dividendDetails")
    result = _sub_object(obj, "result")
    status = obj.get("status")

    return RawPie(
        id=pie_id,
        cash=_safe_float(obj.get("cash", obj.get("cashBalance")), "cash"),
        dividend=DividendDetails(
            gained=_safe_float(dividend.get("gained"), "dividendDetails.gained"),
            reinvested=_safe_float(dividend.get("reinvested"), "dividendDetails.reinvested"),
            in_cash=_safe_float(dividend.get("inCash"), "dividendDetails.inCash"),
        ),
        result=ResultDetails(
            invested_value=_safe_float(
                result.get("priceAvgInvestedValue"), "result.priceAvgInvestedValue"
            ),
            current_value=_safe_float(result.get("priceAvgValue"), "result.priceAvgValue"),
            absolute_result=_safe_float(result.get("priceAvgResult"), "result.priceAvgResult"),
            result_coefficient=_safe_float(
                result.get("priceAvgResultCoef"), "result.priceAvgResultCoef"
            ),
        ),
        progress=_optional_float(obj.get("progress"), "progress"),
        status=str(status) if status is not None else None,
    )


class ListingShape(ABC):
    """One accepted layout of the pie listing."""

    name: str = "shape"

    @abstractmethod
    def extract(self, payload: Any) -> list[dict[str, Any]]:
        """Return the wire pie objects, or raise SchemaError if the layout does not fit."""
        ...

    def parse(self, payload: Any) -> list[RawPie]:
        return [raw_pie_from_wire(obj) for obj in self.extract(payload)]


class ArrayShape(ListingShape):
    name = "array"

    def extract(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            raise SchemaError(
                f"Expected a JSON array, got {type(payload).__name__}",
                expected_shape=self.name,
            )
        return payload


class IdMapShape(ListingShape):
    name = "id_map"

    def extract(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            raise SchemaError(
                f"Expected a JSON object, got {type(payload).__name__}",
                expected_shape=self.name,
            )
        entries: list[dict[str, Any]] = []
        for key, value in payload.items():
            if not isinstance(value, dict):
                raise SchemaError(
                    f"Value under key {key!r} is not a pie object",
                    expected_shape=self.name,
                )
            entry = dict(value)
            # The object's own id wins over the key
            if "id" not in entry:
                entry["id"] = _safe_id(key)
            entries.append(entry)
        return entries


class FlattenedMapShape(ListingShape):
    name = "flattened_map"

    def extract(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            raise SchemaError(
                f"Expected a JSON object, got {type(payload).__name__}",
                expected_shape=self.name,
            )
        grouped: dict[int, dict[str, Any]] = {}
        for key, value in payload.items():
            head, sep, rest = str(key).partition(".")
            if not sep or not rest:
                raise SchemaError(
                    f"Key {key!r} is not of the form '<id>.<field>'",
                    expected_shape=self.name,
                )
            pie_id = _safe_id(head)
            tree = grouped.setdefault(pie_id, {"id": pie_id})
            _insert_path(tree, rest, value)
        return list(grouped.values())


def _insert_path(tree: dict[str, Any], dotted_path: str, value: Any) -> None:
    """Populate ``tree`` with ``value`` located at ``dotted_path``."""
    segments = [segment.strip() for segment in dotted_path.split(".") if segment.strip()]
    if not segments:
        raise SchemaError(f"Empty field path {dotted_path!r}", expected_shape="flattened_map")

    cursor = tree
    for segment in segments[:-1]:
        existing = cursor.setdefault(segment, {})
        if not isinstance(existing, dict):
            raise SchemaError(
                f"Segment '{segment}' of '{dotted_path}' is already a value",
                expected_shape="flattened_map",
            )
        cursor = existing

    leaf = segments[-1]
    if isinstance(cursor.get(leaf), dict):
        raise SchemaError(
            f"Cannot assign '{dotted_path}': existing node at '{leaf}' is a mapping",
            expected_shape="flattened_map",
        )
    cursor[leaf] = value


LISTING_SHAPES: tuple[ListingShape, ...] = (ArrayShape(), IdMapShape(), FlattenedMapShape())


def check_business_error(payload: Any, raw_body: str = "") -> None:
    """
    Raise BusinessError when a decoded 200 body is an error envelope.

    Valid listings and detail documents never carry the marker keys at the top
    level: listings are arrays or maps keyed by pie id, details nest under
    "settings".
    """
    if not isinstance(payload, dict):
        return
    markers = ERROR_MARKER_KEYS & payload.keys()
    if not markers:
        return

    code = payload.get("code")
    message = (
        payload.get("message")
        or payload.get("errorMessage")
        or payload.get("error")
        or payload.get("errors")
        or "unspecified error"
    )
    raise BusinessError(
        f"API reported an error: {message}",
        code=str(code) if code is not None else None,
        raw_body=raw_body,
    )


def parse_listing(payload: Any, raw_body: str = "") -> list[RawPie]:
    """Parse a decoded listing body against every accepted shape in order."""
    check_business_error(payload, raw_body)

    last_error: Optional[SchemaError] = None
    for shape in LISTING_SHAPES:
        try:
            pies = shape.parse(payload)
        except SchemaError as e:
            logger.debug(f"Listing does not match shape '{shape.name}': {e}")
            last_error = e
            continue
        logger.debug(f"Listing parsed as '{shape.name}' ({len(pies)} pies)")
        return pies

    raise SchemaError(
        f"Listing matched no known shape; last failure: {last_error}",
        raw_body=raw_body,
        expected_shape=last_error.expected_shape if last_error else None,
    )


def _parse_creation_date(value: Any) -> float:
    if isinstance(value, str):
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise SchemaError(
                f"Invalid creationDate: {value!r}", expected_shape="timestamp"
            ) from e
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    return _safe_float(value, "settings.creationDate")


def parse_pie_meta(payload: Any, raw_body: str = "") -> PieMeta:
    """Parse ``{"settings": {"creationDate": ..., "name": ...}}``."""
    check_business_error(payload, raw_body)

    if not isinstance(payload, dict) or not isinstance(payload.get("settings"), dict):
        raise SchemaError(
            "Pie detail has no 'settings' object",
            raw_body=raw_body,
            expected_shape="pie_detail",
        )
    settings = payload["settings"]
    if settings.get("creationDate") is None:
        raise SchemaError(
            "Pie detail has no 'settings.creationDate'",
            raw_body=raw_body,
            expected_shape="pie_detail",
        )

    name = settings.get("name")
    return PieMeta(
        created_at=_parse_creation_date(settings["creationDate"]),
        name=str(name) if name is not None else None,
    )
