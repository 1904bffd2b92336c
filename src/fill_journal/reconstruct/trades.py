from __future__ import annotations

from datetime import datetime
from typing import Iterable

from fill_journal.ids import build_derived_id
from fill_journal.models import ORDER_TYPES, DerivedTrade, Fill
from fill_journal.money import ZERO, Money, to_money


def derive_trades(fills: Iterable[Fill]) -> list[DerivedTrade]:
    """Pair fills into round-trip trades, oldest close first.

    Fills are grouped by (symbol, side) and paired two at a time in
    timestamp order. A trailing odd fill is an open position and is left out.
    """
    groups: dict[tuple[str, str], list[Fill]] = {}
    for fill in fills:
        groups.setdefault((fill.symbol, fill.side), []).append(fill)

    trades: list[DerivedTrade] = []
    for group in groups.values():
        # sorted() is stable: equal timestamps keep their input order.
        ordered = sorted(group, key=lambda item: item.timestamp)
        for idx in range(0, len(ordered) - 1, 2):
            trades.append(_pair_trade(ordered[idx], ordered[idx + 1]))

    trades.sort(key=lambda trade: trade.close_timestamp)
    return trades


def _pair_trade(entry: Fill, exit_: Fill) -> DerivedTrade:
    quantity = min(entry.quantity, exit_.quantity)
    entry_notional = to_money(entry.price * quantity)
    exit_notional = to_money(exit_.price * quantity)
    fee_total = to_money(entry.fee) + to_money(exit_.fee)

    if entry.side == "long":
        raw_pnl = exit_notional - entry_notional
    else:
        raw_pnl = entry_notional - exit_notional
    pnl = raw_pnl - fee_total

    order_type_mix = {order_type: 0 for order_type in ORDER_TYPES}
    order_type_mix[entry.order_type] = order_type_mix.get(entry.order_type, 0) + 1
    order_type_mix[exit_.order_type] = order_type_mix.get(exit_.order_type, 0) + 1

    return DerivedTrade(
        trade_id=build_derived_id(entry.symbol, entry.side, entry.timestamp, exit_.timestamp),
        open_timestamp=entry.timestamp,
        close_timestamp=exit_.timestamp,
        symbol=entry.symbol,
        side=entry.side,
        entry_price=entry.price,
        exit_price=exit_.price,
        quantity=quantity,
        pnl=pnl.to_float(),
        return_pct=_return_pct(pnl, entry_notional),
        duration_seconds=duration_seconds(entry.timestamp, exit_.timestamp),
        total_fees=fee_total.to_float(),
        order_type_mix=order_type_mix,
        entry_fill_id=entry.fill_id,
        exit_fill_id=exit_.fill_id,
    )


def duration_seconds(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds())


def _return_pct(pnl: Money, entry_notional: Money) -> float:
    if entry_notional == ZERO:
        return 0.0
    return pnl.ratio(entry_notional)
