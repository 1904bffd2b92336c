from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Iterable

from fill_journal.models import ORDER_TYPES, DerivedTrade
from fill_journal.money import ZERO, Money, safe_div, to_money

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class OrderTypeStats:
    trades: int
    wins: int
    pnl: float
    fees: float


@dataclass(frozen=True)
class TimePerformance:
    daily: dict[str, float]
    weekday: dict[str, float]
    hourly: dict[str, float]


@dataclass(frozen=True)
class SymbolRow:
    symbol: str
    pnl: float
    win_rate: float
    volume: float
    fees: float
    trades: int
    wins: int


def order_type_performance(trades: Iterable[DerivedTrade]) -> dict[str, OrderTypeStats]:
    """Per order type; a trade with mixed legs counts toward both types."""
    counts = {order_type: [0, 0] for order_type in ORDER_TYPES}
    pnl = {order_type: ZERO for order_type in ORDER_TYPES}
    fees = {order_type: ZERO for order_type in ORDER_TYPES}

    for trade in trades:
        trade_pnl = to_money(trade.pnl)
        trade_fees = to_money(trade.total_fees)
        for order_type, weight in trade.order_type_mix.items():
            if weight <= 0:
                continue
            bucket = counts.setdefault(order_type, [0, 0])
            bucket[0] += 1
            if trade.pnl > 0:
                bucket[1] += 1
            pnl[order_type] = pnl.get(order_type, ZERO) + trade_pnl
            fees[order_type] = fees.get(order_type, ZERO) + trade_fees

    return {
        order_type: OrderTypeStats(
            trades=bucket[0],
            wins=bucket[1],
            pnl=pnl[order_type].to_float(),
            fees=fees[order_type].to_float(),
        )
        for order_type, bucket in counts.items()
    }


def time_performance(trades: Iterable[DerivedTrade], tz: tzinfo | None = None) -> TimePerformance:
    """PnL by close day, weekday and hour; ``tz=None`` means the local zone."""
    daily: dict[str, Money] = {}
    weekday: dict[str, Money] = {}
    hourly: dict[str, Money] = {}

    for trade in trades:
        closed = to_zone(trade.close_timestamp, tz)
        pnl = to_money(trade.pnl)
        day_key = closed.date().isoformat()
        weekday_key = WEEKDAY_NAMES[closed.weekday()]
        hour_key = f"{closed.hour:02d}"
        daily[day_key] = daily.get(day_key, ZERO) + pnl
        weekday[weekday_key] = weekday.get(weekday_key, ZERO) + pnl
        hourly[hour_key] = hourly.get(hour_key, ZERO) + pnl

    return TimePerformance(
        daily={key: value.to_float() for key, value in sorted(daily.items())},
        weekday={name: weekday[name].to_float() for name in WEEKDAY_NAMES if name in weekday},
        hourly={key: value.to_float() for key, value in sorted(hourly.items())},
    )


def symbol_breakdown(trades: Iterable[DerivedTrade]) -> list[SymbolRow]:
    buckets: dict[str, list[DerivedTrade]] = {}
    for trade in trades:
        buckets.setdefault(trade.symbol, []).append(trade)

    rows: list[SymbolRow] = []
    for symbol, items in sorted(buckets.items(), key=lambda item: item[0]):
        pnl = ZERO
        volume = ZERO
        fees = ZERO
        wins = 0
        for trade in items:
            pnl += to_money(trade.pnl)
            volume += to_money(trade.entry_notional)
            fees += to_money(trade.total_fees)
            if trade.pnl > 0:
                wins += 1
        rows.append(
            SymbolRow(
                symbol=symbol,
                pnl=pnl.to_float(),
                win_rate=safe_div(wins, len(items)),
                volume=volume.to_float(),
                fees=fees.to_float(),
                trades=len(items),
                wins=wins,
            )
        )
    return rows


def to_zone(value: datetime, tz: tzinfo | None) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz) if tz is not None else value.astimezone()
