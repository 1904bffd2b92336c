from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, tzinfo
from typing import Any, Iterable

from fill_journal.filters import FilterState, apply_fill_filters, apply_trade_filters, symbols_in
from fill_journal.metrics.breakdowns import order_type_performance, symbol_breakdown, time_performance
from fill_journal.metrics.equity import drawdown_series, equity_curve
from fill_journal.metrics.summary import (
    average_duration,
    long_short_ratio,
    total_pnl,
    volume_and_fees,
    win_loss_stats,
)
from fill_journal.models import DerivedTrade, Fill
from fill_journal.reconstruct.trades import derive_trades


def build_report(
    fills: Iterable[Fill],
    filters: FilterState | None = None,
    tz: tzinfo | None = None,
) -> dict[str, Any]:
    """Every dashboard analytic for one filtered set of fills, JSON-ready."""
    fill_list = list(fills)
    if filters is not None:
        fill_list = apply_fill_filters(fill_list, filters, tz)
    trades = derive_trades(fill_list)
    if filters is not None:
        trades = apply_trade_filters(trades, filters, tz)

    curve = equity_curve(trades)
    drawdown = drawdown_series(curve)
    time_perf = time_performance(trades, tz)

    return {
        "fill_count": len(fill_list),
        "symbols": symbols_in(fill_list),
        "total_pnl": asdict(total_pnl(trades)),
        "volume_and_fees": asdict(volume_and_fees(fill_list)),
        "win_loss": asdict(win_loss_stats(trades)),
        "average_duration_seconds": average_duration(trades),
        "long_short": asdict(long_short_ratio(trades)),
        "equity_curve": [
            {"timestamp": _isoformat(point.timestamp), "equity": point.equity} for point in curve
        ],
        "drawdown": {
            "max_drawdown": drawdown.max_drawdown,
            "series": [
                {
                    "timestamp": _isoformat(point.timestamp),
                    "drawdown": point.drawdown,
                    "drawdown_pct": point.drawdown_pct,
                }
                for point in drawdown.series
            ],
        },
        "time_performance": asdict(time_perf),
        "symbol_breakdown": [asdict(row) for row in symbol_breakdown(trades)],
        "order_types": {name: asdict(stats) for name, stats in order_type_performance(trades).items()},
        "trades": [trade_payload(trade) for trade in trades],
    }


def trade_payload(trade: DerivedTrade) -> dict[str, Any]:
    return {
        "trade_id": trade.trade_id,
        "symbol": trade.symbol,
        "side": trade.side,
        "open_timestamp": _isoformat(trade.open_timestamp),
        "close_timestamp": _isoformat(trade.close_timestamp),
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "quantity": trade.quantity,
        "pnl": trade.pnl,
        "return_pct": trade.return_pct,
        "duration_seconds": trade.duration_seconds,
        "total_fees": trade.total_fees,
        "order_type_mix": dict(trade.order_type_mix),
        "entry_fill_id": trade.entry_fill_id,
        "exit_fill_id": trade.exit_fill_id,
    }


def fill_payload(fill: Fill) -> dict[str, Any]:
    return {
        "fill_id": fill.fill_id,
        "timestamp": _isoformat(fill.timestamp),
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
    }


def _isoformat(value: datetime) -> str:
    return value.isoformat()
