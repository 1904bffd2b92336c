from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

from fill_journal.ingest.csv_fills import import_fills
from fill_journal.models import FEE_TYPES, MARKET_TYPES, ORDER_TYPES, SIDES, Fill
from fill_journal.storage.base import StorageRepository

logger = logging.getLogger("fill_journal.demo")

DEMO_SYMBOLS = ("DRV/USDC", "SOL/USDC", "JUP/USDC", "BONK/USDC", "RNDR/USDC")


def generate_demo_fills(
    trade_count: int = 40,
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[Fill]:
    """Entry/exit fill pairs spread over the last 30 days, oldest first."""
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    fills: list[Fill] = []
    for index in range(1, trade_count + 1):
        symbol = rng.choice(DEMO_SYMBOLS)
        market_type = rng.choice(MARKET_TYPES)
        side = rng.choice(SIDES)
        fee_type = rng.choice(FEE_TYPES)
        quantity = round(rng.uniform(0.5, 6), 2)
        entry_price = round(rng.uniform(0.4, 18), 2)
        exit_price = round(entry_price * rng.uniform(0.85, 1.25), 2)
        opened = now - timedelta(days=rng.uniform(1, 30))
        closed = opened + timedelta(minutes=rng.uniform(5, 240))
        common = dict(symbol=symbol, market_type=market_type, side=side, quantity=quantity, fee_type=fee_type)
        fills.append(
            Fill(
                fill_id=f"fill-{index}-entry",
                timestamp=opened,
                price=entry_price,
                fee=round(rng.uniform(0.01, 0.2), 4),
                order_type=rng.choice(ORDER_TYPES),
                tx_ref=f"tx-{index}-a",
                tags=frozenset({"seed", "entry"}),
                **common,
            )
        )
        fills.append(
            Fill(
                fill_id=f"fill-{index}-exit",
                timestamp=closed,
                price=exit_price,
                fee=round(rng.uniform(0.01, 0.2), 4),
                order_type=rng.choice(ORDER_TYPES),
                tx_ref=f"tx-{index}-b",
                tags=frozenset({"seed", "exit"}),
                **common,
            )
        )
    return sorted(fills, key=lambda fill: fill.timestamp)


def seed_demo_if_empty(repo: StorageRepository, trade_count: int = 40, *, rng: random.Random | None = None) -> int:
    """Seed demo fills into an empty store; returns the number inserted."""
    if repo.get_fills(limit=1):
        return 0
    _, result = import_fills(
        repo,
        generate_demo_fills(trade_count, rng=rng),
        source_type="mock",
        source_label="Demo data",
    )
    logger.info("Seeded %d demo fills", result.inserted)
    return result.inserted
