from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

MARKET_TYPES = ("spot", "perp", "options")
SIDES = ("long", "short")
FEE_TYPES = ("maker", "taker", "funding", "other")
ORDER_TYPES = ("market", "limit", "stop", "other")

SYNC_STATUSES = ("idle", "syncing", "ok", "error")
IMPORT_SOURCES = ("csv", "manual", "mock", "indexer", "api")
IMPORT_STATUSES = ("pending", "processed", "failed")


@dataclass(frozen=True)
class Fill:
    fill_id: str | None
    timestamp: datetime
    symbol: str
    market_type: str
    side: str
    quantity: float
    price: float
    fee: float
    fee_type: str
    order_type: str
    tx_ref: str
    event_id: str | None = None
    tags: frozenset[str] = frozenset()
    account_id: str | None = None
    import_id: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def notional(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True)
class DerivedTrade:
    trade_id: str
    open_timestamp: datetime
    close_timestamp: datetime
    symbol: str
    side: str
    entry_price: float
    exit_price: float
    quantity: float
    pnl: float
    return_pct: float
    duration_seconds: float
    total_fees: float
    order_type_mix: Mapping[str, int]
    entry_fill_id: str | None = None
    exit_fill_id: str | None = None

    @property
    def entry_notional(self) -> float:
        return self.entry_price * self.quantity


@dataclass
class FillAnnotation:
    annotation_id: str
    fill_id: str
    user_id: str
    note: str | None
    tags: list[str]
    created_at: datetime
    updated_at: datetime | None = None


@dataclass
class JournalEntry:
    entry_id: str | None
    title: str
    strategy_tag: str = ""
    mood: str = ""
    mistakes: str = ""
    lessons: str = ""
    screenshot_urls: list[str] = field(default_factory=list)
    custom_tags: list[str] = field(default_factory=list)
    trade_ref: str | None = None
    account_id: str | None = None
    created_at: datetime | None = None


@dataclass
class Account:
    account_id: str
    user_id: str
    chain: str
    wallet_address: str
    created_at: datetime
    label: str | None = None
    last_synced_at: datetime | None = None
    last_synced_ref: str | None = None
    sync_status: str = "idle"
    sync_error: str | None = None
    updated_at: datetime | None = None


@dataclass
class ImportRecord:
    import_id: str
    user_id: str
    source_type: str
    created_at: datetime
    source_label: str | None = None
    file_hash: str | None = None
    account_id: str | None = None
    status: str = "pending"


@dataclass(frozen=True)
class InsertResult:
    inserted: int
    skipped: int
