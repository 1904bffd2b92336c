"""Event ids, derived-trade ids and the number/timestamp renderings they hash."""

from datetime import datetime, timedelta, timezone

from fill_journal.ids import (
    build_derived_id,
    build_event_id,
    build_record_id,
    djb2,
    event_id_for,
    format_number,
    iso_timestamp,
)

from conftest import make_fill, ts


def test_djb2_known_value() -> None:
    assert djb2("") == 5381
    assert djb2("a") == 177604


def test_djb2_wraps_to_signed_32_bit() -> None:
    value = djb2("x" * 200)
    assert -(2**31) <= value < 2**31


def test_event_id_is_deterministic() -> None:
    first = build_event_id("abc123", ts(15, 14, 12), "DRV/USDC", 2.5, 8.32)
    second = build_event_id("abc123", ts(15, 14, 12), "DRV/USDC", 2.5, 8.32)
    assert first == second
    assert first.startswith("e")
    int(first[1:], 16)


def test_event_id_changes_with_any_input() -> None:
    base = build_event_id("abc123", ts(15), "DRV/USDC", 2.5, 8.32)
    assert build_event_id("abc124", ts(15), "DRV/USDC", 2.5, 8.32) != base
    assert build_event_id("abc123", ts(15, 11), "DRV/USDC", 2.5, 8.32) != base
    assert build_event_id("abc123", ts(15), "SOL/USDC", 2.5, 8.32) != base
    assert build_event_id("abc123", ts(15), "DRV/USDC", 2.0, 8.32) != base
    assert build_event_id("abc123", ts(15), "DRV/USDC", 2.5, 8.33) != base


def test_event_id_ignores_timezone_representation() -> None:
    utc = ts(15, 14)
    shifted = utc.astimezone(timezone(timedelta(hours=5)))
    assert build_event_id("tx", utc, "SOL/USDC", 1, 2) == build_event_id("tx", shifted, "SOL/USDC", 1, 2)


def test_event_id_for_fill_matches_fields() -> None:
    fill = make_fill(quantity=2, price=10, tx_ref="tx1", timestamp=ts(5))
    assert event_id_for(fill) == build_event_id("tx1", ts(5), "DRV/USDC", 2, 10)


def test_derived_id_format() -> None:
    trade_id = build_derived_id("DRV/USDC", "long", ts(5, 10), ts(5, 11))
    assert trade_id == "DRV/USDC-long-2026-01-05T10:00:00.000Z-2026-01-05T11:00:00.000Z"


def test_iso_timestamp_uses_milliseconds_and_z() -> None:
    value = datetime(2026, 1, 15, 14, 12, 0, 123456, tzinfo=timezone.utc)
    assert iso_timestamp(value) == "2026-01-15T14:12:00.123Z"


def test_format_number_matches_shortest_decimal() -> None:
    assert format_number(2.0) == "2"
    assert format_number(8.32) == "8.32"
    assert format_number(0.1) == "0.1"
    assert format_number(0.00001) == "0.00001"
    assert format_number(1e-7) == "1e-7"


def test_record_ids_are_unique_within_a_batch() -> None:
    ids = {build_record_id("fill") for _ in range(500)}
    assert len(ids) == 500
    assert all(item.startswith("fill-") for item in ids)
