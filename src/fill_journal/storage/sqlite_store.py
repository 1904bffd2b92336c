from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Iterable

from fill_journal.filters import FilterState, date_bounds, is_constrained
from fill_journal.ids import build_record_id
from fill_journal.models import Account, Fill, FillAnnotation, ImportRecord, InsertResult, JournalEntry
from fill_journal.storage.base import (
    DEFAULT_FILL_LIMIT,
    UNSET,
    check_import_source,
    check_import_status,
    check_sync_status,
    normalize_tags,
    parse_storage_ts,
    to_storage_ts,
    utc_now,
    with_event_id,
)

logger = logging.getLogger("fill_journal.storage")

SCHEMA_VERSION = 1


def connect(db_path: Path) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    # Python-side lower() so search folds case exactly like the in-memory predicate.
    conn.create_function("py_lower", 1, _py_lower, deterministic=True)
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            account_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            chain TEXT NOT NULL,
            wallet_address TEXT NOT NULL,
            label TEXT,
            created_at TEXT NOT NULL,
            last_synced_at TEXT,
            last_synced_ref TEXT,
            sync_status TEXT NOT NULL,
            sync_error TEXT,
            updated_at TEXT,
            UNIQUE (chain, wallet_address)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS imports (
            import_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            source_type TEXT NOT NULL,
            source_label TEXT,
            file_hash TEXT,
            account_id TEXT,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS fills (
            fill_id TEXT PRIMARY KEY,
            import_id TEXT,
            account_id TEXT,
            timestamp TEXT NOT NULL,
            symbol TEXT NOT NULL,
            market_type TEXT NOT NULL,
            side TEXT NOT NULL,
            quantity REAL NOT NULL,
            price REAL NOT NULL,
            fee REAL NOT NULL,
            fee_type TEXT NOT NULL,
            order_type TEXT NOT NULL,
            tx_ref TEXT NOT NULL,
            event_id TEXT NOT NULL,
            tags_json TEXT NOT NULL,
            raw_json TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS fills_dedup
        ON fills (COALESCE(account_id, ''), tx_ref, event_id)
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS fills_timestamp ON fills (timestamp)")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS fill_annotations (
            annotation_id TEXT PRIMARY KEY,
            fill_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            note TEXT,
            tags_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT,
            UNIQUE (fill_id, user_id)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS journal_entries (
            entry_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            trade_ref TEXT,
            account_id TEXT,
            title TEXT NOT NULL,
            strategy_tag TEXT NOT NULL,
            mood TEXT NOT NULL,
            mistakes TEXT NOT NULL,
            lessons TEXT NOT NULL,
            screenshot_urls_json TEXT NOT NULL,
            custom_tags_json TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            schema_version INTEGER NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        INSERT OR IGNORE INTO schema_version (id, schema_version, updated_at)
        VALUES (1, ?, CURRENT_TIMESTAMP)
        """,
        (SCHEMA_VERSION,),
    )
    conn.commit()


def fill_query_clauses(filters: FilterState | None, tz: tzinfo | None = None) -> tuple[list[str], list[Any]]:
    """Translate a ``FilterState`` into SQL clauses equivalent to ``fill_matches``."""
    clauses: list[str] = []
    params: list[Any] = []
    if filters is None:
        return clauses, params
    lower, upper = date_bounds(filters.start_date, filters.end_date, tz)
    if lower is not None:
        clauses.append("timestamp >= ?")
        params.append(to_storage_ts(lower))
    if upper is not None:
        clauses.append("timestamp < ?")
        params.append(to_storage_ts(upper))
    for column, value in (
        ("symbol", filters.symbol),
        ("market_type", filters.market_type),
        ("side", filters.side),
        ("account_id", filters.account_id),
        ("order_type", filters.order_type),
    ):
        if is_constrained(value):
            clauses.append(f"{column} = ?")
            params.append(value)
    if filters.search:
        clauses.append("instr(py_lower(symbol || ' ' || tx_ref), ?) > 0")
        params.append(filters.search.lower())
    return clauses, params


class SqliteRepository:
    """Relational storage backend on a single SQLite database."""

    def __init__(
        self,
        db_path: Path,
        *,
        user_id: str = "local-user",
        tz: tzinfo | None = None,
    ) -> None:
        self.db_path = db_path
        self.user_id = user_id
        self.tz = tz
        self.conn = connect(db_path)
        init_db(self.conn)

    def close(self) -> None:
        self.conn.close()

    # accounts

    def get_accounts(self) -> list[Account]:
        rows = self.conn.execute(
            "SELECT * FROM accounts WHERE user_id = ? ORDER BY created_at DESC",
            (self.user_id,),
        ).fetchall()
        return [_account_from_row(row) for row in rows]

    def get_account(self, account_id: str) -> Account | None:
        row = self.conn.execute("SELECT * FROM accounts WHERE account_id = ?", (account_id,)).fetchone()
        return _account_from_row(row) if row is not None else None

    def add_account(self, wallet_address: str, *, chain: str = "solana", label: str | None = None) -> Account:
        existing = self.conn.execute(
            "SELECT 1 FROM accounts WHERE chain = ? AND wallet_address = ?",
            (chain, wallet_address),
        ).fetchone()
        if existing is not None:
            raise ValueError("Wallet already linked to another profile.")
        now = utc_now()
        account = Account(
            account_id=build_record_id("acct"),
            user_id=self.user_id,
            chain=chain,
            wallet_address=wallet_address,
            label=label,
            created_at=now,
            updated_at=now,
        )
        self.conn.execute(
            """
            INSERT INTO accounts (
                account_id, user_id, chain, wallet_address, label, created_at,
                last_synced_at, last_synced_ref, sync_status, sync_error, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, NULL, NULL, ?, NULL, ?)
            """,
            (
                account.account_id,
                account.user_id,
                account.chain,
                account.wallet_address,
                account.label,
                to_storage_ts(now),
                account.sync_status,
                to_storage_ts(now),
            ),
        )
        self.conn.commit()
        logger.info("Linked %s wallet %s as %s", chain, wallet_address, account.account_id)
        return account

    def update_account_sync_state(
        self,
        account_id: str,
        *,
        last_synced_at: datetime | None | object = UNSET,
        last_synced_ref: str | None | object = UNSET,
        sync_status: str | object = UNSET,
        sync_error: str | None | object = UNSET,
    ) -> None:
        assignments = ["updated_at = ?"]
        params: list[Any] = [to_storage_ts(utc_now())]
        if last_synced_at is not UNSET:
            assignments.append("last_synced_at = ?")
            params.append(to_storage_ts(last_synced_at) if isinstance(last_synced_at, datetime) else None)
        if last_synced_ref is not UNSET:
            assignments.append("last_synced_ref = ?")
            params.append(last_synced_ref)
        if sync_status is not UNSET:
            check_sync_status(str(sync_status))
            assignments.append("sync_status = ?")
            params.append(sync_status)
        if sync_error is not UNSET:
            assignments.append("sync_error = ?")
            params.append(sync_error)
        params.append(account_id)
        self.conn.execute(f"UPDATE accounts SET {', '.join(assignments)} WHERE account_id = ?", params)
        self.conn.commit()

    # fills

    def get_fills(
        self,
        filters: FilterState | None = None,
        *,
        limit: int = DEFAULT_FILL_LIMIT,
        offset: int = 0,
    ) -> list[Fill]:
        clauses, params = fill_query_clauses(filters, self.tz)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"SELECT * FROM fills{where} ORDER BY timestamp DESC, rowid ASC LIMIT ? OFFSET ?"
        rows = self.conn.execute(query, [*params, limit, offset]).fetchall()
        return [_fill_from_row(row) for row in rows]

    def insert_fills(self, import_id: str | None, fills: Iterable[Fill]) -> InsertResult:
        inserted = 0
        skipped = 0
        for fill in fills:
            fill = with_event_id(fill)
            cursor = self.conn.execute(
                """
                INSERT OR IGNORE INTO fills (
                    fill_id, import_id, account_id, timestamp, symbol, market_type, side,
                    quantity, price, fee, fee_type, order_type, tx_ref, event_id, tags_json, raw_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    build_record_id("fill"),
                    import_id if import_id is not None else fill.import_id,
                    fill.account_id,
                    to_storage_ts(fill.timestamp),
                    fill.symbol,
                    fill.market_type,
                    fill.side,
                    fill.quantity,
                    fill.price,
                    fill.fee,
                    fill.fee_type,
                    fill.order_type,
                    fill.tx_ref,
                    fill.event_id,
                    _json_dump(sorted(fill.tags)),
                    _json_dump(dict(fill.raw)),
                ),
            )
            if cursor.rowcount == 1:
                inserted += 1
            else:
                skipped += 1
        self.conn.commit()
        logger.info("Inserted %d fills (%d duplicates skipped)", inserted, skipped)
        return InsertResult(inserted=inserted, skipped=skipped)

    def insert_fills_idempotent(self, account_id: str | None, fills: Iterable[Fill]) -> InsertResult:
        scoped = [replace(fill, account_id=account_id) for fill in fills]
        import_id = scoped[0].import_id if scoped else None
        return self.insert_fills(import_id, scoped)

    # annotations

    def get_fill_annotation(self, fill_id: str) -> FillAnnotation | None:
        row = self.conn.execute(
            "SELECT * FROM fill_annotations WHERE fill_id = ? AND user_id = ?",
            (fill_id, self.user_id),
        ).fetchone()
        return _annotation_from_row(row) if row is not None else None

    def upsert_fill_annotation(
        self, fill_id: str, *, note: str | None = None, tags: Iterable[str] = ()
    ) -> FillAnnotation:
        current = self.get_fill_annotation(fill_id)
        now = utc_now()
        annotation = FillAnnotation(
            annotation_id=current.annotation_id if current else build_record_id("annotation"),
            fill_id=fill_id,
            user_id=self.user_id,
            note=note,
            tags=normalize_tags(tags),
            created_at=current.created_at if current else now,
            updated_at=now,
        )
        self.conn.execute(
            """
            INSERT INTO fill_annotations (
                annotation_id, fill_id, user_id, note, tags_json, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(fill_id, user_id) DO UPDATE SET
                note=excluded.note,
                tags_json=excluded.tags_json,
                updated_at=excluded.updated_at
            """,
            (
                annotation.annotation_id,
                annotation.fill_id,
                annotation.user_id,
                annotation.note,
                _json_dump(annotation.tags),
                to_storage_ts(annotation.created_at),
                to_storage_ts(now),
            ),
        )
        self.conn.commit()
        return annotation

    # journal

    def list_journal_entries(self) -> list[JournalEntry]:
        rows = self.conn.execute(
            "SELECT * FROM journal_entries WHERE user_id = ? ORDER BY created_at DESC",
            (self.user_id,),
        ).fetchall()
        return [_journal_from_row(row) for row in rows]

    def upsert_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        created_at = utc_now()
        if entry.entry_id:
            row = self.conn.execute(
                "SELECT created_at FROM journal_entries WHERE entry_id = ?",
                (entry.entry_id,),
            ).fetchone()
            if row is not None:
                created_at = parse_storage_ts(row["created_at"]) or created_at
        saved = replace(entry, entry_id=entry.entry_id or build_record_id("journal"), created_at=created_at)
        self.conn.execute(
            """
            INSERT INTO journal_entries (
                entry_id, user_id, created_at, trade_ref, account_id, title, strategy_tag,
                mood, mistakes, lessons, screenshot_urls_json, custom_tags_json
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(entry_id) DO UPDATE SET
                trade_ref=excluded.trade_ref,
                account_id=excluded.account_id,
                title=excluded.title,
                strategy_tag=excluded.strategy_tag,
                mood=excluded.mood,
                mistakes=excluded.mistakes,
                lessons=excluded.lessons,
                screenshot_urls_json=excluded.screenshot_urls_json,
                custom_tags_json=excluded.custom_tags_json
            """,
            (
                saved.entry_id,
                self.user_id,
                to_storage_ts(created_at),
                saved.trade_ref,
                saved.account_id,
                saved.title,
                saved.strategy_tag,
                saved.mood,
                saved.mistakes,
                saved.lessons,
                _json_dump(list(saved.screenshot_urls)),
                _json_dump(list(saved.custom_tags)),
            ),
        )
        self.conn.commit()
        return saved

    def delete_journal_entry(self, entry_id: str) -> None:
        self.conn.execute("DELETE FROM journal_entries WHERE entry_id = ?", (entry_id,))
        self.conn.commit()

    # imports

    def create_import(
        self,
        source_type: str,
        *,
        source_label: str | None = None,
        file_hash: str | None = None,
        account_id: str | None = None,
    ) -> ImportRecord:
        check_import_source(source_type)
        record = ImportRecord(
            import_id=build_record_id("import"),
            user_id=self.user_id,
            source_type=source_type,
            source_label=source_label,
            file_hash=file_hash,
            account_id=account_id,
            created_at=utc_now(),
        )
        self.conn.execute(
            """
            INSERT INTO imports (
                import_id, user_id, source_type, source_label, file_hash, account_id, status, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.import_id,
                record.user_id,
                record.source_type,
                record.source_label,
                record.file_hash,
                record.account_id,
                record.status,
                to_storage_ts(record.created_at),
            ),
        )
        self.conn.commit()
        return record

    def get_imports(self) -> list[ImportRecord]:
        rows = self.conn.execute(
            "SELECT * FROM imports WHERE user_id = ? ORDER BY created_at DESC",
            (self.user_id,),
        ).fetchall()
        return [_import_from_row(row) for row in rows]

    def mark_import_status(self, import_id: str, status: str) -> None:
        check_import_status(status)
        self.conn.execute("UPDATE imports SET status = ? WHERE import_id = ?", (status, import_id))
        self.conn.commit()

    def reset(self) -> None:
        for table in ("fill_annotations", "fills", "imports", "journal_entries", "accounts"):
            self.conn.execute(f"DELETE FROM {table}")
        self.conn.commit()
        logger.warning("Cleared all journal data in %s", self.db_path)


def _fill_from_row(row: sqlite3.Row) -> Fill:
    return Fill(
        fill_id=row["fill_id"],
        timestamp=parse_storage_ts(row["timestamp"]),
        symbol=row["symbol"],
        market_type=row["market_type"],
        side=row["side"],
        quantity=row["quantity"],
        price=row["price"],
        fee=row["fee"],
        fee_type=row["fee_type"],
        order_type=row["order_type"],
        tx_ref=row["tx_ref"],
        event_id=row["event_id"],
        tags=frozenset(_maybe_json(row["tags_json"], [])),
        account_id=row["account_id"],
        import_id=row["import_id"],
        raw=_maybe_json(row["raw_json"], {}),
    )


def _account_from_row(row: sqlite3.Row) -> Account:
    return Account(
        account_id=row["account_id"],
        user_id=row["user_id"],
        chain=row["chain"],
        wallet_address=row["wallet_address"],
        label=row["label"],
        created_at=parse_storage_ts(row["created_at"]),
        last_synced_at=parse_storage_ts(row["last_synced_at"]),
        last_synced_ref=row["last_synced_ref"],
        sync_status=row["sync_status"],
        sync_error=row["sync_error"],
        updated_at=parse_storage_ts(row["updated_at"]),
    )


def _annotation_from_row(row: sqlite3.Row) -> FillAnnotation:
    return FillAnnotation(
        annotation_id=row["annotation_id"],
        fill_id=row["fill_id"],
        user_id=row["user_id"],
        note=row["note"],
        tags=list(_maybe_json(row["tags_json"], [])),
        created_at=parse_storage_ts(row["created_at"]),
        updated_at=parse_storage_ts(row["updated_at"]),
    )


def _journal_from_row(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        entry_id=row["entry_id"],
        title=row["title"],
        strategy_tag=row["strategy_tag"],
        mood=row["mood"],
        mistakes=row["mistakes"],
        lessons=row["lessons"],
        screenshot_urls=list(_maybe_json(row["screenshot_urls_json"], [])),
        custom_tags=list(_maybe_json(row["custom_tags_json"], [])),
        trade_ref=row["trade_ref"],
        account_id=row["account_id"],
        created_at=parse_storage_ts(row["created_at"]),
    )


def _import_from_row(row: sqlite3.Row) -> ImportRecord:
    return ImportRecord(
        import_id=row["import_id"],
        user_id=row["user_id"],
        source_type=row["source_type"],
        source_label=row["source_label"],
        file_hash=row["file_hash"],
        account_id=row["account_id"],
        status=row["status"],
        created_at=parse_storage_ts(row["created_at"]),
    )


def _py_lower(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).lower()


def _json_dump(value: object) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _maybe_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return default
