"""CSV/JSON fill import: validation, template, import lifecycle."""

import json
from datetime import datetime, timezone

import pytest

from fill_journal.ingest.csv_fills import (
    build_csv_template,
    file_digest,
    import_fills,
    load_fills,
    parse_fills_csv,
)
from fill_journal.storage.local_store import LocalRepository

HEADER = "id,ts,symbol,marketType,side,qty,price,fee,feeType,orderType,txSig,tags"


def test_template_parses_cleanly() -> None:
    result = parse_fills_csv(build_csv_template())
    assert result.ok
    [fill] = result.fills
    assert fill.fill_id == "fill-1"
    assert fill.timestamp == datetime(2026, 1, 15, 14, 12, tzinfo=timezone.utc)
    assert (fill.symbol, fill.market_type, fill.side) == ("DRV/USDC", "perp", "long")
    assert (fill.quantity, fill.price, fill.fee) == (2.5, 8.32, 0.12)
    assert (fill.fee_type, fill.order_type, fill.tx_ref) == ("taker", "market", "abc123")
    assert fill.tags == frozenset({"breakout", "core"})


def test_invalid_rows_report_line_and_field() -> None:
    text = "\n".join(
        [
            HEADER,
            ",2026-01-15T14:12:00Z,DRV/USDC,perp,long,1,8,0.1,taker,market,tx1,",
            ",2026-01-15T15:00:00Z,DRV/USDC,perp,up,0,8,-1,taker,market,tx2,",
            ",not-a-date,SOL/USDC,swap,short,1,abc,0,maker,limit,,",
        ]
    )
    result = parse_fills_csv(text)
    assert len(result.fills) == 1
    assert not result.ok
    by_row = {}
    for error in result.errors:
        by_row.setdefault(error.row, set()).add(error.field)
    assert by_row == {
        3: {"side", "qty", "fee"},
        4: {"ts", "marketType", "price", "txSig"},
    }


def test_blank_lines_are_ignored() -> None:
    text = HEADER + "\n\n,2026-01-15T14:12:00Z,DRV/USDC,perp,long,1,8,0,taker,market,tx1,\n\n"
    result = parse_fills_csv(text)
    assert result.ok
    assert len(result.fills) == 1


def test_snake_case_headers_and_offsets() -> None:
    text = "\n".join(
        [
            "timestamp,symbol,market_type,side,quantity,price,fee,fee_type,order_type,tx_ref",
            "2026-01-15T09:12:00-05:00,SOL/USDC,spot,short,1,8,0,maker,limit,tx9",
        ]
    )
    [fill] = parse_fills_csv(text).fills
    assert fill.timestamp == datetime(2026, 1, 15, 14, 12, tzinfo=timezone.utc)
    assert fill.tx_ref == "tx9"
    assert fill.tags == frozenset()


def test_load_fills_reads_json_and_tsv(tmp_path) -> None:
    json_path = tmp_path / "fills.json"
    json_path.write_text(
        json.dumps(
            {
                "fills": [
                    {
                        "ts": "2026-01-15T14:12:00.000Z",
                        "symbol": "DRV/USDC",
                        "marketType": "perp",
                        "side": "long",
                        "qty": 2,
                        "price": 10,
                        "fee": 0.1,
                        "feeType": "taker",
                        "orderType": "market",
                        "txSig": "tx1",
                        "tags": ["a", "b"],
                    },
                    {"ts": "2026-01-15T14:12:00.000Z", "symbol": "DRV/USDC"},
                ]
            }
        ),
        encoding="utf-8",
    )
    result = load_fills(json_path)
    assert len(result.fills) == 1
    assert result.fills[0].tags == frozenset({"a", "b"})
    assert {error.row for error in result.errors} == {2}

    tsv_path = tmp_path / "fills.tsv"
    tsv_path.write_text(build_csv_template().replace(",", "\t"), encoding="utf-8")
    assert len(load_fills(tsv_path).fills) == 1

    with pytest.raises(ValueError):
        load_fills(tmp_path / "fills.xlsx")


def test_import_fills_marks_processed_and_dedups(tmp_path) -> None:
    repo = LocalRepository(tmp_path / "journal.json", tz=timezone.utc)
    fills = parse_fills_csv(build_csv_template()).fills
    record, result = import_fills(repo, fills, source_label="template.csv", file_hash=file_digest("x"))
    assert record.status == "processed"
    assert (result.inserted, result.skipped) == (1, 0)
    [stored] = repo.get_fills()
    assert stored.import_id == record.import_id

    _, again = import_fills(repo, fills, source_label="template.csv")
    assert (again.inserted, again.skipped) == (0, 1)
    assert {item.status for item in repo.get_imports()} == {"processed"}


class _FailingRepository(LocalRepository):
    def insert_fills_idempotent(self, account_id, fills):
        raise RuntimeError("disk full")


def test_import_fills_marks_failed_and_reraises(tmp_path) -> None:
    repo = _FailingRepository(tmp_path / "journal.json")
    fills = parse_fills_csv(build_csv_template()).fills
    with pytest.raises(RuntimeError):
        import_fills(repo, fills)
    [record] = repo.get_imports()
    assert record.status == "failed"


def test_file_digest_is_stable() -> None:
    assert file_digest("abc") == file_digest(b"abc")
    assert len(file_digest("abc")) == 64
