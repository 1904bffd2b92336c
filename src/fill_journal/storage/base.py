from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Protocol

from fill_journal.filters import FilterState
from fill_journal.ids import event_id_for
from fill_journal.models import (
    IMPORT_SOURCES,
    IMPORT_STATUSES,
    SYNC_STATUSES,
    Account,
    Fill,
    FillAnnotation,
    ImportRecord,
    InsertResult,
    JournalEntry,
)

DEFAULT_FILL_LIMIT = 10_000

# Sentinel for "leave this field unchanged" in partial updates.
UNSET: object = object()


class StorageRepository(Protocol):
    def get_accounts(self) -> list[Account]: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def add_account(self, wallet_address: str, *, chain: str = "solana", label: str | None = None) -> Account: ...

    def get_fills(
        self,
        filters: FilterState | None = None,
        *,
        limit: int = DEFAULT_FILL_LIMIT,
        offset: int = 0,
    ) -> list[Fill]: ...

    def insert_fills(self, import_id: str | None, fills: Iterable[Fill]) -> InsertResult: ...

    def insert_fills_idempotent(self, account_id: str | None, fills: Iterable[Fill]) -> InsertResult: ...

    def get_fill_annotation(self, fill_id: str) -> FillAnnotation | None: ...

    def upsert_fill_annotation(
        self, fill_id: str, *, note: str | None = None, tags: Iterable[str] = ()
    ) -> FillAnnotation: ...

    def list_journal_entries(self) -> list[JournalEntry]: ...

    def upsert_journal_entry(self, entry: JournalEntry) -> JournalEntry: ...

    def delete_journal_entry(self, entry_id: str) -> None: ...

    def create_import(
        self,
        source_type: str,
        *,
        source_label: str | None = None,
        file_hash: str | None = None,
        account_id: str | None = None,
    ) -> ImportRecord: ...

    def mark_import_status(self, import_id: str, status: str) -> None: ...

    def update_account_sync_state(
        self,
        account_id: str,
        *,
        last_synced_at: datetime | None | object = UNSET,
        last_synced_ref: str | None | object = UNSET,
        sync_status: str | object = UNSET,
        sync_error: str | None | object = UNSET,
    ) -> None: ...

    def reset(self) -> None: ...


def with_event_id(fill: Fill) -> Fill:
    if fill.event_id:
        return fill
    return replace(fill, event_id=event_id_for(fill))


def dedup_key(fill: Fill) -> tuple[str, str, str]:
    return (fill.account_id or "", fill.tx_ref, fill.event_id or event_id_for(fill))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_storage_ts(value: datetime) -> str:
    """Fixed-width UTC ISO text; sorts lexicographically in time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_storage_ts(value: str | None) -> datetime | None:
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def check_import_source(source_type: str) -> None:
    if source_type not in IMPORT_SOURCES:
        raise ValueError(f"Unknown import source: {source_type!r}")


def check_import_status(status: str) -> None:
    if status not in IMPORT_STATUSES:
        raise ValueError(f"Unknown import status: {status!r}")


def check_sync_status(status: str) -> None:
    if status not in SYNC_STATUSES:
        raise ValueError(f"Unknown sync status: {status!r}")


def normalize_tags(tags: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for tag in tags:
        cleaned = str(tag).strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen
