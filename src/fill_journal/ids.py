"""Stable identifiers for fills and derived trades.

The event id is a deliberately non-cryptographic djb2 hash. Changing the
algorithm, or the way its input string is rendered, changes every stored
dedup key, so previously imported fills would stop being recognised as
duplicates. Any change here needs a key-version migration.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from fill_journal.models import Fill

_DJB2_SEED = 5381


def build_event_id(
    tx_ref: str,
    timestamp: datetime,
    symbol: str,
    quantity: float,
    price: float,
) -> str:
    raw = f"{tx_ref}-{iso_timestamp(timestamp)}-{symbol}-{format_number(quantity)}-{format_number(price)}"
    return f"e{abs(djb2(raw)):x}"


def event_id_for(fill: Fill) -> str:
    return build_event_id(fill.tx_ref, fill.timestamp, fill.symbol, fill.quantity, fill.price)


def build_derived_id(symbol: str, side: str, open_timestamp: datetime, close_timestamp: datetime) -> str:
    return f"{symbol}-{side}-{iso_timestamp(open_timestamp)}-{iso_timestamp(close_timestamp)}"


def build_record_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


def djb2(text: str) -> int:
    """32-bit signed djb2 (xor variant) over UTF-16 code units."""
    value = _DJB2_SEED
    encoded = text.encode("utf-16-le")
    for idx in range(0, len(encoded), 2):
        unit = encoded[idx] | (encoded[idx + 1] << 8)
        value = _to_int32(value * 33) ^ unit
    return value


def iso_timestamp(value: datetime) -> str:
    """Millisecond UTC form, e.g. ``2026-01-01T10:00:00.000Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_number(value: float) -> str:
    """Shortest round-trip decimal, without a trailing ``.0`` on integers."""
    number = float(value)
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    text = repr(number)
    if "e" not in text:
        return text
    if 1e-6 <= abs(number) < 1e21:
        return format(Decimal(text), "f")
    mantissa, exponent = text.split("e")
    sign = "-" if exponent.startswith("-") else "+"
    return f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value
