"""
State file encoding.

One pretty-printed JSON object mapping str(pie id) to a record. Live fields
keep the API's wire layout, so files written by earlier versions of the
tracker (which had no "name") load unchanged:

{
  "17": {
    "id": 17,
    "cash": 0.52,
    "dividendDetails": {"gained": 1.2, "reinvested": 1.0, "inCash": 0.2},
    "result": {"priceAvgInvestedValue": 100.0, "priceAvgValue": 110.0,
               "priceAvgResult": 10.0, "priceAvgResultCoef": 0.1},
    "progress": 0.4,
    "status": "AHEAD",
    "name": "Dividends",
    "created_at": 1690000000.0
  }
}
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable

import orjson

from pietracker.errors.errors import PersistenceError, SchemaError
from pietracker.remote.shapes import raw_pie_from_wire
from pietracker.types.types import PieId, PieRecord

logger = logging.getLogger(__name__)


def encode_record(record: PieRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "cash": record.cash,
        "dividendDetails": {
            "gained": record.dividend.gained,
            "reinvested": record.dividend.reinvested,
            "inCash": record.dividend.in_cash,
        },
        "result": {
            "priceAvgInvestedValue": record.result.invested_value,
            "priceAvgValue": record.result.current_value,
            "priceAvgResult": record.result.absolute_result,
            "priceAvgResultCoef": record.result.result_coefficient,
        },
        "progress": record.progress,
        "status": record.status,
        "name": record.name,
        "created_at": record.created_at,
    }


def decode_record(obj: Any) -> PieRecord:
    """Rebuild a PieRecord; raises SchemaError for malformed entries."""
    raw = raw_pie_from_wire(obj)
    name = obj.get("name")
    created_at = obj.get("created_at")
    if created_at is not None:
        if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
            raise SchemaError(f"Invalid created_at: {created_at!r}", expected_shape="float")
        created_at = float(created_at)
    return PieRecord.from_raw(raw).with_enrichment(
        created_at=created_at,
        name=str(name) if name is not None else None,
    )


def dumps_records(records: Iterable[PieRecord]) -> bytes:
    ordered = sorted(records, key=lambda r: r.id)
    document = {str(r.id): encode_record(r) for r in ordered}
    return orjson.dumps(document, option=orjson.OPT_INDENT_2)


def loads_records(data: bytes | str) -> dict[PieId, PieRecord]:
    """
    Decode a state document.

    Raises PersistenceError when the document as a whole is unusable; single
    malformed entries are skipped with a warning.
    """
    try:
        document = orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise PersistenceError(f"State file is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise PersistenceError(
            f"State file must hold a JSON object, got {type(document).__name__}"
        )

    records: dict[PieId, PieRecord] = {}
    for key, obj in document.items():
        try:
            record = decode_record(obj)
        except SchemaError as e:
            logger.warning(f"Skipping unreadable state entry {key!r}: {e}")
            continue
        records[record.id] = record
    return records


def save_records(records: Iterable[PieRecord], path: Path) -> None:
    """Write records atomically (temp file, fsync, replace)."""
    try:
        payload = dumps_records(records)
    except orjson.JSONEncodeError as e:
        raise PersistenceError(f"Failed to encode state: {e}", path=str(path)) from e
    tmp_fp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_fp, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        tmp_fp.replace(path)
    except OSError as e:
        raise PersistenceError(f"Failed to write state file: {e}", path=str(path)) from e


def load_records(path: Path) -> dict[PieId, PieRecord]:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise PersistenceError(f"Failed to read state file: {e}", path=str(path)) from e
    try:
        return loads_records(data)
    except PersistenceError as e:
        raise PersistenceError(e.args[0], path=str(path)) from e
