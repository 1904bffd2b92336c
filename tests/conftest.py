"""Pytest fixtures: fill and trade builders for deterministic tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fill_journal.models import ORDER_TYPES, DerivedTrade, Fill
from fill_journal.storage.local_store import LocalRepository
from fill_journal.storage.sqlite_store import SqliteRepository


def ts(day: int, hour: int = 10, minute: int = 0) -> datetime:
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


def make_fill(
    symbol: str = "DRV/USDC",
    side: str = "long",
    quantity: float = 1.0,
    price: float = 10.0,
    fee: float = 0.0,
    timestamp: datetime | None = None,
    *,
    fill_id: str | None = None,
    market_type: str = "perp",
    fee_type: str = "taker",
    order_type: str = "market",
    tx_ref: str | None = None,
    account_id: str | None = None,
) -> Fill:
    timestamp = timestamp or ts(5)
    return Fill(
        fill_id=fill_id,
        timestamp=timestamp,
        symbol=symbol,
        market_type=market_type,
        side=side,
        quantity=quantity,
        price=price,
        fee=fee,
        fee_type=fee_type,
        order_type=order_type,
        tx_ref=tx_ref or f"tx-{symbol}-{timestamp.isoformat()}",
        account_id=account_id,
    )


def make_trade(
    pnl: float,
    close: datetime,
    *,
    symbol: str = "DRV/USDC",
    side: str = "long",
    entry_price: float = 10.0,
    quantity: float = 1.0,
    total_fees: float = 0.0,
    order_types: tuple[str, str] = ("market", "market"),
) -> DerivedTrade:
    mix = {order_type: 0 for order_type in ORDER_TYPES}
    for order_type in order_types:
        mix[order_type] += 1
    opened = close - timedelta(minutes=30)
    return DerivedTrade(
        trade_id=f"{symbol}-{side}-{opened.isoformat()}-{close.isoformat()}",
        open_timestamp=opened,
        close_timestamp=close,
        symbol=symbol,
        side=side,
        entry_price=entry_price,
        exit_price=entry_price,
        quantity=quantity,
        pnl=pnl,
        return_pct=0.0,
        duration_seconds=1800.0,
        total_fees=total_fees,
        order_type_mix=mix,
    )


@pytest.fixture
def scenario_fills() -> list[Fill]:
    """DRV long 10 -> 12 (qty 2) and SOL short 8 -> 9 (qty 1)."""
    return [
        make_fill("DRV/USDC", "long", 2, 10, 0.1, ts(5, 10), fill_id="f1", tx_ref="tx1"),
        make_fill("DRV/USDC", "long", 2, 12, 0.1, ts(5, 11), fill_id="f2", tx_ref="tx2", order_type="limit"),
        make_fill("SOL/USDC", "short", 1, 8, 0.05, ts(6, 12), fill_id="f3", tx_ref="tx3", market_type="spot"),
        make_fill(
            "SOL/USDC",
            "short",
            1,
            9,
            0.05,
            ts(6, 13),
            fill_id="f4",
            tx_ref="tx4",
            market_type="spot",
            fee_type="maker",
        ),
    ]


@pytest.fixture(params=["sqlite", "local"])
def repo(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "sqlite":
        store = SqliteRepository(tmp_path / "journal.sqlite", user_id="tester", tz=timezone.utc)
        yield store
        store.close()
    else:
        yield LocalRepository(tmp_path / "journal.json", user_id="tester", tz=timezone.utc)
