from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, TypeVar

from fill_journal.ids import build_event_id, djb2, iso_timestamp
from fill_journal.models import FEE_TYPES, MARKET_TYPES, ORDER_TYPES, SIDES, Account, Fill
from fill_journal.storage.base import StorageRepository

logger = logging.getLogger("fill_journal.sync")

MOCK_SYMBOLS = ("SOL/USDC", "DRV/USDC", "JUP/USDC", "BONK/USDC", "RNDR/USDC")

T = TypeVar("T")


@dataclass(frozen=True)
class SyncCursor:
    last_synced_at: datetime | None = None
    last_synced_ref: str | None = None


@dataclass(frozen=True)
class SyncBatch:
    fills: list[Fill]
    next_cursor: SyncCursor


@dataclass(frozen=True)
class SyncResult:
    inserted: int
    skipped: int
    next_cursor: SyncCursor


class SyncProvider(Protocol):
    source_type: str
    source_label: str

    def fetch_new_fills(self, wallet_address: str, cursor: SyncCursor) -> SyncBatch: ...


class MockSyncProvider:
    """Deterministic stand-in for an on-chain indexer.

    The same wallet and cursor always produce the same fills, so re-running a
    sync from an unchanged cursor only yields duplicates.
    """

    source_type = "mock"
    source_label = "Mock Sync"

    def __init__(
        self,
        *,
        count: int = 20,
        spread_days: int = 21,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.count = count
        self.spread_days = spread_days
        self._now = now or (lambda: datetime.now(timezone.utc))

    def fetch_new_fills(self, wallet_address: str, cursor: SyncCursor) -> SyncBatch:
        current = cursor.last_synced_at or (self._now() - timedelta(days=self.spread_days))
        fills: list[Fill] = []
        for index in range(self.count):
            current = current + timedelta(minutes=30 + seeded_value(wallet_address, index + 17) % (24 * 60))
            symbol = seeded_pick(MOCK_SYMBOLS, wallet_address, index + 1)
            quantity = round(0.5 + seeded_value(wallet_address, index) / 1000 * 3, 2)
            price = round(2 + seeded_value(wallet_address, index + 7) / 1000 * 48, 2)
            fee = round(0.01 + seeded_value(wallet_address, index + 13) / 1000 * 0.24, 4)
            tx_ref = f"{wallet_address[:6]}-{iso_timestamp(current)}-{index}"
            fills.append(
                Fill(
                    fill_id=None,
                    timestamp=current,
                    symbol=symbol,
                    market_type=seeded_pick(MARKET_TYPES, wallet_address, index + 5),
                    side=seeded_pick(SIDES, wallet_address, index + 3),
                    quantity=quantity,
                    price=price,
                    fee=fee,
                    fee_type=seeded_pick(FEE_TYPES, wallet_address, index + 11),
                    order_type=seeded_pick(ORDER_TYPES, wallet_address, index + 9),
                    tx_ref=tx_ref,
                    event_id=build_event_id(tx_ref, current, symbol, quantity, price),
                    tags=frozenset({"sync", "mock"}),
                    raw={"source": "mock", "wallet_address": wallet_address},
                )
            )
        if not fills:
            return SyncBatch(fills=[], next_cursor=cursor)
        last = fills[-1]
        return SyncBatch(
            fills=fills,
            next_cursor=SyncCursor(last_synced_at=last.timestamp, last_synced_ref=last.tx_ref),
        )


def seeded_value(seed: str, index: int) -> int:
    return abs(djb2(f"{seed}-{index}")) % 1000


def seeded_pick(items: tuple[T, ...], seed: str, index: int) -> T:
    return items[seeded_value(seed, index) % len(items)]


def build_provider(name: str, *, count: int = 20, spread_days: int = 21) -> SyncProvider:
    if name == "mock":
        return MockSyncProvider(count=count, spread_days=spread_days)
    raise ValueError(f"Unknown sync provider: {name!r}")


def run_account_sync(account: Account, provider: SyncProvider, repo: StorageRepository) -> SyncResult:
    repo.update_account_sync_state(account.account_id, sync_status="syncing", sync_error=None)
    record = None
    try:
        record = repo.create_import(
            provider.source_type,
            source_label=provider.source_label,
            account_id=account.account_id,
        )
        batch = provider.fetch_new_fills(
            account.wallet_address,
            SyncCursor(last_synced_at=account.last_synced_at, last_synced_ref=account.last_synced_ref),
        )
        fills = [replace(fill, import_id=record.import_id) for fill in batch.fills]
        result = repo.insert_fills_idempotent(account.account_id, fills)
        repo.mark_import_status(record.import_id, "processed")
        repo.update_account_sync_state(
            account.account_id,
            sync_status="ok",
            last_synced_at=batch.next_cursor.last_synced_at,
            last_synced_ref=batch.next_cursor.last_synced_ref,
            sync_error=None,
        )
    except Exception as exc:
        logger.warning("Sync failed for account %s: %s", account.account_id, exc)
        repo.update_account_sync_state(account.account_id, sync_status="error", sync_error=str(exc) or "Sync failed.")
        if record is not None:
            try:
                repo.mark_import_status(record.import_id, "failed")
            except Exception:
                logger.exception("Could not mark import %s as failed", record.import_id)
        raise
    logger.info(
        "Synced account %s: %d inserted, %d skipped",
        account.account_id,
        result.inserted,
        result.skipped,
    )
    return SyncResult(inserted=result.inserted, skipped=result.skipped, next_cursor=batch.next_cursor)
