from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from fill_journal.models import DerivedTrade
from fill_journal.money import ZERO, to_money


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    equity: float


@dataclass(frozen=True)
class DrawdownPoint:
    timestamp: datetime
    drawdown: float
    drawdown_pct: float


@dataclass(frozen=True)
class DrawdownSeries:
    series: list[DrawdownPoint]
    max_drawdown: float


def equity_curve(trades: Iterable[DerivedTrade]) -> list[EquityPoint]:
    ordered = sorted(trades, key=lambda trade: trade.close_timestamp)
    equity = ZERO
    points: list[EquityPoint] = []
    for trade in ordered:
        equity += to_money(trade.pnl)
        points.append(EquityPoint(timestamp=trade.close_timestamp, equity=equity.to_float()))
    return points


def drawdown_series(curve: Iterable[EquityPoint]) -> DrawdownSeries:
    """Drawdown from the running peak; the peak starts at flat (zero) equity."""
    peak = ZERO
    max_drawdown = ZERO
    series: list[DrawdownPoint] = []
    for point in curve:
        equity = to_money(point.equity)
        peak = max(peak, equity)
        drawdown = equity - peak
        max_drawdown = min(max_drawdown, drawdown)
        series.append(
            DrawdownPoint(
                timestamp=point.timestamp,
                drawdown=drawdown.to_float(),
                drawdown_pct=drawdown.ratio(peak),
            )
        )
    return DrawdownSeries(series=series, max_drawdown=max_drawdown.to_float())
