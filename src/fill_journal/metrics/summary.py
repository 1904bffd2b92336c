from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from fill_journal.models import DerivedTrade, Fill
from fill_journal.money import ZERO, Money, safe_div, sum_money, to_money

BIAS_BALANCED = "balanced"
BIAS_LONG = "long"
BIAS_SHORT = "short"


@dataclass(frozen=True)
class PnlTotal:
    pnl: float
    pnl_pct: float


@dataclass(frozen=True)
class VolumeAndFees:
    volume: float
    fee_total: float
    fee_breakdown: dict[str, float]


@dataclass(frozen=True)
class WinLossStats:
    trade_count: int
    wins: int
    losses: int
    win_rate: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float
    profit_factor: float
    expectancy: float


@dataclass(frozen=True)
class LongShortRatio:
    long_count: int
    short_count: int
    ratio: float
    bias: str


def total_pnl(trades: Iterable[DerivedTrade]) -> PnlTotal:
    total = ZERO
    entry_total = ZERO
    for trade in trades:
        total += to_money(trade.pnl)
        entry_total += to_money(trade.entry_notional)
    return PnlTotal(pnl=total.to_float(), pnl_pct=total.ratio(entry_total))


def volume_and_fees(fills: Iterable[Fill]) -> VolumeAndFees:
    """Totals over raw fills, open legs included."""
    volume = ZERO
    fees = ZERO
    breakdown: dict[str, Money] = {}
    for fill in fills:
        volume += to_money(fill.notional)
        fee = to_money(fill.fee)
        fees += fee
        breakdown[fill.fee_type] = breakdown.get(fill.fee_type, ZERO) + fee
    return VolumeAndFees(
        volume=volume.to_float(),
        fee_total=fees.to_float(),
        fee_breakdown={key: value.to_float() for key, value in breakdown.items()},
    )


def win_loss_stats(trades: Iterable[DerivedTrade]) -> WinLossStats:
    trade_list = list(trades)
    wins = [to_money(trade.pnl) for trade in trade_list if trade.pnl > 0]
    losses = [to_money(trade.pnl) for trade in trade_list if trade.pnl < 0]

    total_win = sum_money(wins)
    total_loss = sum_money(losses)
    net = sum_money(trade.pnl for trade in trade_list)

    return WinLossStats(
        trade_count=len(trade_list),
        wins=len(wins),
        losses=len(losses),
        win_rate=safe_div(len(wins), len(trade_list)),
        avg_win=total_win.divide(len(wins)).to_float(),
        avg_loss=total_loss.divide(len(losses)).to_float(),
        largest_win=max(wins, default=ZERO).to_float(),
        largest_loss=min(losses, default=ZERO).to_float(),
        profit_factor=safe_div(total_win.raw, abs(total_loss.raw)),
        expectancy=net.divide(len(trade_list)).to_float(),
    )


def average_duration(trades: Iterable[DerivedTrade]) -> float:
    durations = [trade.duration_seconds for trade in trades]
    return safe_div(sum(durations), len(durations))


def long_short_ratio(trades: Iterable[DerivedTrade]) -> LongShortRatio:
    long_count = 0
    short_count = 0
    for trade in trades:
        if trade.side == "long":
            long_count += 1
        elif trade.side == "short":
            short_count += 1

    ratio = float(long_count) if short_count == 0 else long_count / short_count
    if long_count == short_count:
        bias = BIAS_BALANCED
    elif long_count > short_count:
        bias = BIAS_LONG
    else:
        bias = BIAS_SHORT
    return LongShortRatio(long_count=long_count, short_count=short_count, ratio=ratio, bias=bias)
