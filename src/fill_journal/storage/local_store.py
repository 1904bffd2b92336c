from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, replace
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Iterable

from fill_journal.filters import FilterState, fill_matches
from fill_journal.ids import build_record_id
from fill_journal.models import Account, Fill, FillAnnotation, ImportRecord, InsertResult, JournalEntry
from fill_journal.storage.base import (
    DEFAULT_FILL_LIMIT,
    UNSET,
    check_import_source,
    check_import_status,
    check_sync_status,
    dedup_key,
    normalize_tags,
    parse_storage_ts,
    to_storage_ts,
    utc_now,
    with_event_id,
)

logger = logging.getLogger("fill_journal.storage")

COLLECTIONS = ("accounts", "imports", "fills", "annotations", "journal_entries")


class LocalRepository:
    """Single-user JSON document store; every query is filtered in memory."""

    def __init__(
        self,
        path: Path,
        *,
        user_id: str = "local-user",
        tz: tzinfo | None = None,
    ) -> None:
        self.path = path
        self.user_id = user_id
        self.tz = tz
        self._state = self._load()

    # accounts

    def get_accounts(self) -> list[Account]:
        accounts = [_account_from_doc(doc) for doc in self._state["accounts"]]
        return sorted(accounts, key=lambda account: account.created_at, reverse=True)

    def get_account(self, account_id: str) -> Account | None:
        for doc in self._state["accounts"]:
            if doc["account_id"] == account_id:
                return _account_from_doc(doc)
        return None

    def add_account(self, wallet_address: str, *, chain: str = "solana", label: str | None = None) -> Account:
        for doc in self._state["accounts"]:
            if doc["chain"] == chain and doc["wallet_address"] == wallet_address:
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
        self._state["accounts"].append(_account_to_doc(account))
        self._save()
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
        for doc in self._state["accounts"]:
            if doc["account_id"] != account_id:
                continue
            if last_synced_at is not UNSET:
                doc["last_synced_at"] = (
                    to_storage_ts(last_synced_at) if isinstance(last_synced_at, datetime) else None
                )
            if last_synced_ref is not UNSET:
                doc["last_synced_ref"] = last_synced_ref
            if sync_status is not UNSET:
                check_sync_status(str(sync_status))
                doc["sync_status"] = sync_status
            if sync_error is not UNSET:
                doc["sync_error"] = sync_error
            doc["updated_at"] = to_storage_ts(utc_now())
        self._save()

    # fills

    def get_fills(
        self,
        filters: FilterState | None = None,
        *,
        limit: int = DEFAULT_FILL_LIMIT,
        offset: int = 0,
    ) -> list[Fill]:
        fills = [_fill_from_doc(doc) for doc in self._state["fills"]]
        if filters is not None:
            fills = [fill for fill in fills if fill_matches(fill, filters, self.tz)]
        fills.sort(key=lambda fill: fill.timestamp, reverse=True)
        return fills[offset : offset + limit]

    def insert_fills(self, import_id: str | None, fills: Iterable[Fill]) -> InsertResult:
        seen = {dedup_key(_fill_from_doc(doc)) for doc in self._state["fills"]}
        inserted = 0
        skipped = 0
        for fill in fills:
            fill = with_event_id(fill)
            key = dedup_key(fill)
            if key in seen:
                skipped += 1
                continue
            seen.add(key)
            stored = replace(
                fill,
                fill_id=build_record_id("fill"),
                import_id=import_id if import_id is not None else fill.import_id,
            )
            self._state["fills"].append(_fill_to_doc(stored))
            inserted += 1
        self._save()
        logger.info("Inserted %d fills (%d duplicates skipped)", inserted, skipped)
        return InsertResult(inserted=inserted, skipped=skipped)

    def insert_fills_idempotent(self, account_id: str | None, fills: Iterable[Fill]) -> InsertResult:
        scoped = [replace(fill, account_id=account_id) for fill in fills]
        import_id = scoped[0].import_id if scoped else None
        return self.insert_fills(import_id, scoped)

    # annotations

    def get_fill_annotation(self, fill_id: str) -> FillAnnotation | None:
        for doc in self._state["annotations"]:
            if doc["fill_id"] == fill_id and doc["user_id"] == self.user_id:
                return _annotation_from_doc(doc)
        return None

    def upsert_fill_annotation(
        self, fill_id: str, *, note: str | None = None, tags: Iterable[str] = ()
    ) -> FillAnnotation:
        now = utc_now()
        current = self.get_fill_annotation(fill_id)
        annotation = FillAnnotation(
            annotation_id=current.annotation_id if current else build_record_id("annotation"),
            fill_id=fill_id,
            user_id=self.user_id,
            note=note,
            tags=normalize_tags(tags),
            created_at=current.created_at if current else now,
            updated_at=now,
        )
        others = [
            doc
            for doc in self._state["annotations"]
            if not (doc["fill_id"] == fill_id and doc["user_id"] == self.user_id)
        ]
        self._state["annotations"] = [*others, _annotation_to_doc(annotation)]
        self._save()
        return annotation

    # journal

    def list_journal_entries(self) -> list[JournalEntry]:
        entries = [_journal_from_doc(doc) for doc in self._state["journal_entries"]]
        return sorted(entries, key=lambda entry: entry.created_at, reverse=True)

    def upsert_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        created_at = utc_now()
        remaining = []
        for doc in self._state["journal_entries"]:
            if entry.entry_id and doc["entry_id"] == entry.entry_id:
                created_at = parse_storage_ts(doc["created_at"]) or created_at
                continue
            remaining.append(doc)
        saved = replace(entry, entry_id=entry.entry_id or build_record_id("journal"), created_at=created_at)
        self._state["journal_entries"] = [_journal_to_doc(saved), *remaining]
        self._save()
        return saved

    def delete_journal_entry(self, entry_id: str) -> None:
        self._state["journal_entries"] = [
            doc for doc in self._state["journal_entries"] if doc["entry_id"] != entry_id
        ]
        self._save()

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
        doc = asdict(record)
        doc["created_at"] = to_storage_ts(record.created_at)
        self._state["imports"].insert(0, doc)
        self._save()
        return record

    def get_imports(self) -> list[ImportRecord]:
        return [_import_from_doc(doc) for doc in self._state["imports"]]

    def mark_import_status(self, import_id: str, status: str) -> None:
        check_import_status(status)
        for doc in self._state["imports"]:
            if doc["import_id"] == import_id:
                doc["status"] = status
        self._save()

    def reset(self) -> None:
        self._state = _empty_state()
        self._save()
        logger.warning("Cleared all journal data in %s", self.path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return _empty_state()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Unreadable journal file {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Journal file {self.path} does not hold a JSON object")
        state = _empty_state()
        for key in COLLECTIONS:
            if isinstance(payload.get(key), list):
                state[key] = payload[key]
        return state

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            handle.write(json.dumps(self._state, indent=2, sort_keys=True, default=str) + "\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, self.path)


def _empty_state() -> dict[str, Any]:
    return {key: [] for key in COLLECTIONS}


def _fill_to_doc(fill: Fill) -> dict[str, Any]:
    return {
        "fill_id": fill.fill_id,
        "timestamp": to_storage_ts(fill.timestamp),
        "symbol": fill.symbol,
        "market_type": fill.market_type,
        "side": fill.side,
        "quantity": fill.quantity,
        "price": fill.price,
        "fee": fill.fee,
        "fee_type": fill.fee_type,
        "order_type": fill.order_type,
        "tx_ref": fill.tx_ref,
        "event_id": fill.event_id,
        "tags": sorted(fill.tags),
        "account_id": fill.account_id,
        "import_id": fill.import_id,
        "raw": dict(fill.raw),
    }


def _fill_from_doc(doc: dict[str, Any]) -> Fill:
    return Fill(
        fill_id=doc.get("fill_id"),
        timestamp=parse_storage_ts(doc["timestamp"]),
        symbol=doc["symbol"],
        market_type=doc["market_type"],
        side=doc["side"],
        quantity=float(doc["quantity"]),
        price=float(doc["price"]),
        fee=float(doc.get("fee", 0.0)),
        fee_type=doc.get("fee_type", "other"),
        order_type=doc.get("order_type", "other"),
        tx_ref=doc["tx_ref"],
        event_id=doc.get("event_id"),
        tags=frozenset(doc.get("tags") or ()),
        account_id=doc.get("account_id"),
        import_id=doc.get("import_id"),
        raw=doc.get("raw") or {},
    )


def _account_to_doc(account: Account) -> dict[str, Any]:
    doc = asdict(account)
    for key in ("created_at", "last_synced_at", "updated_at"):
        value = doc[key]
        doc[key] = to_storage_ts(value) if isinstance(value, datetime) else None
    return doc


def _account_from_doc(doc: dict[str, Any]) -> Account:
    return Account(
        account_id=doc["account_id"],
        user_id=doc["user_id"],
        chain=doc["chain"],
        wallet_address=doc["wallet_address"],
        label=doc.get("label"),
        created_at=parse_storage_ts(doc["created_at"]),
        last_synced_at=parse_storage_ts(doc.get("last_synced_at")),
        last_synced_ref=doc.get("last_synced_ref"),
        sync_status=doc.get("sync_status", "idle"),
        sync_error=doc.get("sync_error"),
        updated_at=parse_storage_ts(doc.get("updated_at")),
    )


def _annotation_to_doc(annotation: FillAnnotation) -> dict[str, Any]:
    doc = asdict(annotation)
    doc["created_at"] = to_storage_ts(annotation.created_at)
    doc["updated_at"] = to_storage_ts(annotation.updated_at) if annotation.updated_at else None
    return doc


def _annotation_from_doc(doc: dict[str, Any]) -> FillAnnotation:
    return FillAnnotation(
        annotation_id=doc["annotation_id"],
        fill_id=doc["fill_id"],
        user_id=doc["user_id"],
        note=doc.get("note"),
        tags=list(doc.get("tags") or []),
        created_at=parse_storage_ts(doc["created_at"]),
        updated_at=parse_storage_ts(doc.get("updated_at")),
    )


def _journal_to_doc(entry: JournalEntry) -> dict[str, Any]:
    doc = asdict(entry)
    doc["created_at"] = to_storage_ts(entry.created_at) if entry.created_at else None
    return doc


def _journal_from_doc(doc: dict[str, Any]) -> JournalEntry:
    return JournalEntry(
        entry_id=doc["entry_id"],
        title=doc.get("title", ""),
        strategy_tag=doc.get("strategy_tag", ""),
        mood=doc.get("mood", ""),
        mistakes=doc.get("mistakes", ""),
        lessons=doc.get("lessons", ""),
        screenshot_urls=list(doc.get("screenshot_urls") or []),
        custom_tags=list(doc.get("custom_tags") or []),
        trade_ref=doc.get("trade_ref"),
        account_id=doc.get("account_id"),
        created_at=parse_storage_ts(doc.get("created_at")),
    )


def _import_from_doc(doc: dict[str, Any]) -> ImportRecord:
    return ImportRecord(
        import_id=doc["import_id"],
        user_id=doc["user_id"],
        source_type=doc["source_type"],
        source_label=doc.get("source_label"),
        file_hash=doc.get("file_hash"),
        account_id=doc.get("account_id"),
        status=doc.get("status", "pending"),
        created_at=parse_storage_ts(doc["created_at"]),
    )
