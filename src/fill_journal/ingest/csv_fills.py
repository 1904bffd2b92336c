from __future__ import annotations

import csv
import hashlib
import io
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from fill_journal.models import FEE_TYPES, MARKET_TYPES, ORDER_TYPES, SIDES, Fill, ImportRecord, InsertResult
from fill_journal.storage.base import StorageRepository

logger = logging.getLogger("fill_journal.ingest")

CSV_COLUMNS = (
    "id",
    "ts",
    "symbol",
    "marketType",
    "side",
    "qty",
    "price",
    "fee",
    "feeType",
    "orderType",
    "txSig",
    "tags",
)

# snake_case spellings accepted in place of the canonical headers.
COLUMN_ALIASES = {
    "ts": ("ts", "timestamp"),
    "marketType": ("marketType", "market_type"),
    "qty": ("qty", "quantity"),
    "feeType": ("feeType", "fee_type"),
    "orderType": ("orderType", "order_type"),
    "txSig": ("txSig", "tx_sig", "tx_ref"),
}


@dataclass(frozen=True)
class CsvError:
    row: int
    field: str
    message: str


@dataclass(frozen=True)
class CsvValidationResult:
    fills: list[Fill] = field(default_factory=list)
    errors: list[CsvError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_fills_csv(text: str, *, delimiter: str = ",") -> CsvValidationResult:
    """Validate every data row; rows with any error are reported and left out."""
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    fills: list[Fill] = []
    errors: list[CsvError] = []
    for raw in reader:
        row = {str(key).strip(): (value or "").strip() for key, value in raw.items() if key is not None}
        if not any(row.values()):
            continue
        fill, row_errors = _validate_record(row, reader.line_num)
        if fill is None:
            errors.extend(row_errors)
        else:
            fills.append(fill)
    return CsvValidationResult(fills=fills, errors=errors)


def load_fills(path: str | Path) -> CsvValidationResult:
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix in {".csv", ".tsv"}:
        text = source_path.read_text(encoding="utf-8")
        return parse_fills_csv(text, delimiter="\t" if suffix == ".tsv" else ",")
    if suffix == ".json":
        with source_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return parse_fill_records(_extract_records(payload))
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def parse_fill_records(records: Iterable[Mapping[str, Any]]) -> CsvValidationResult:
    fills: list[Fill] = []
    errors: list[CsvError] = []
    for index, raw in enumerate(records, start=1):
        row = {str(key): _text(value) for key, value in raw.items()}
        fill, row_errors = _validate_record(row, index)
        if fill is None:
            errors.extend(row_errors)
        else:
            fills.append(fill)
    return CsvValidationResult(fills=fills, errors=errors)


def build_csv_template() -> str:
    return "\n".join(
        [
            ",".join(CSV_COLUMNS),
            "fill-1,2026-01-15T14:12:00.000Z,DRV/USDC,perp,long,2.5,8.32,0.12,taker,market,abc123,breakout|core",
        ]
    )


def file_digest(content: str | bytes) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


def import_fills(
    repo: StorageRepository,
    fills: Iterable[Fill],
    *,
    source_type: str = "csv",
    source_label: str | None = None,
    file_hash: str | None = None,
    account_id: str | None = None,
) -> tuple[ImportRecord, InsertResult]:
    record = repo.create_import(
        source_type,
        source_label=source_label,
        file_hash=file_hash,
        account_id=account_id,
    )
    try:
        tagged = [replace(fill, import_id=record.import_id) for fill in fills]
        result = repo.insert_fills_idempotent(account_id, tagged)
    except Exception:
        logger.exception("Import %s failed", record.import_id)
        repo.mark_import_status(record.import_id, "failed")
        raise
    repo.mark_import_status(record.import_id, "processed")
    record = replace(record, status="processed")
    logger.info(
        "Import %s (%s): %d inserted, %d skipped",
        record.import_id,
        source_label or source_type,
        result.inserted,
        result.skipped,
    )
    return record, result


def _validate_record(row: Mapping[str, str], line: int) -> tuple[Fill | None, list[CsvError]]:
    errors: list[CsvError] = []

    def fail(field_name: str, message: str) -> None:
        errors.append(CsvError(row=line, field=field_name, message=message))

    timestamp = _parse_timestamp(_column(row, "ts"), fail)
    symbol = _column(row, "symbol")
    if not symbol:
        fail("symbol", "Required")
    market_type = _choice(row, "marketType", MARKET_TYPES, fail)
    side = _choice(row, "side", SIDES, fail)
    quantity = _number(row, "qty", fail, positive=True)
    price = _number(row, "price", fail, positive=True)
    fee = _number(row, "fee", fail, positive=False)
    fee_type = _choice(row, "feeType", FEE_TYPES, fail)
    order_type = _choice(row, "orderType", ORDER_TYPES, fail)
    tx_ref = _column(row, "txSig")
    if not tx_ref:
        fail("txSig", "Required")

    if errors:
        return None, errors

    tags = frozenset(tag.strip() for tag in _column(row, "tags").split("|") if tag.strip())
    return (
        Fill(
            fill_id=_column(row, "id") or None,
            timestamp=timestamp,
            symbol=symbol,
            market_type=market_type,
            side=side,
            quantity=quantity,
            price=price,
            fee=fee,
            fee_type=fee_type,
            order_type=order_type,
            tx_ref=tx_ref,
            tags=tags,
            raw=dict(row),
        ),
        errors,
    )


def _column(row: Mapping[str, str], name: str) -> str:
    for key in COLUMN_ALIASES.get(name, (name,)):
        value = row.get(key)
        if value:
            return value
    return ""


def _choice(row: Mapping[str, str], name: str, allowed: tuple[str, ...], fail) -> str:
    value = _column(row, name)
    if value not in allowed:
        fail(name, f"Expected one of {', '.join(allowed)}; got {value!r}")
    return value


def _number(row: Mapping[str, str], name: str, fail, *, positive: bool) -> float:
    value = _column(row, name)
    if not value:
        fail(name, "Required")
        return 0.0
    try:
        number = float(value)
    except ValueError:
        fail(name, f"Expected a number; got {value!r}")
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        fail(name, f"Expected a finite number; got {value!r}")
    elif positive and number <= 0:
        fail(name, "Must be greater than 0")
    elif not positive and number < 0:
        fail(name, "Must be greater than or equal to 0")
    return number


def _parse_timestamp(value: str, fail) -> datetime:
    if not value:
        fail("ts", "Required")
        return datetime.min.replace(tzinfo=timezone.utc)
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        fail("ts", f"Invalid datetime; got {value!r}")
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _extract_records(payload: Any) -> list[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("fills"), list):
        return payload["fills"]
    raise ValueError("Unsupported JSON format for fills payload")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "|".join(str(item) for item in value)
    return str(value).strip()
