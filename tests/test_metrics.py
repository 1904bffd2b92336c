"""Analytics over derived trades and raw fills."""

from datetime import datetime, timedelta, timezone

import pytest

from fill_journal.metrics.breakdowns import (
    WEEKDAY_NAMES,
    order_type_performance,
    symbol_breakdown,
    time_performance,
    to_zone,
)
from fill_journal.metrics.equity import drawdown_series, equity_curve
from fill_journal.metrics.report import build_report
from fill_journal.metrics.summary import (
    average_duration,
    long_short_ratio,
    total_pnl,
    volume_and_fees,
    win_loss_stats,
)
from fill_journal.filters import FilterState
from fill_journal.reconstruct.trades import derive_trades

from conftest import make_fill, make_trade, ts


def test_empty_inputs_are_zero() -> None:
    stats = win_loss_stats([])
    assert stats.trade_count == 0
    assert stats.win_rate == 0.0
    assert stats.avg_win == 0.0
    assert stats.avg_loss == 0.0
    assert stats.profit_factor == 0.0
    pnl = total_pnl([])
    assert (pnl.pnl, pnl.pnl_pct) == (0.0, 0.0)
    assert average_duration([]) == 0.0
    assert equity_curve([]) == []
    assert drawdown_series([]).max_drawdown == 0.0


def test_scenario_total_pnl(scenario_fills) -> None:
    pnl = total_pnl(derive_trades(scenario_fills))
    assert pnl.pnl == pytest.approx(2.7)
    assert pnl.pnl_pct == pytest.approx(2.7 / 28)
    assert pnl.pnl_pct > 0


def test_win_loss_excludes_breakeven() -> None:
    trades = [
        make_trade(5, ts(5)),
        make_trade(-2, ts(6)),
        make_trade(0, ts(7)),
        make_trade(3, ts(8)),
    ]
    stats = win_loss_stats(trades)
    assert (stats.trade_count, stats.wins, stats.losses) == (4, 2, 1)
    assert stats.win_rate == 0.5
    assert stats.avg_win == pytest.approx(4.0)
    assert stats.avg_loss == pytest.approx(-2.0)
    assert stats.largest_win == pytest.approx(5.0)
    assert stats.largest_loss == pytest.approx(-2.0)
    assert stats.profit_factor == pytest.approx(4.0)
    assert stats.expectancy == pytest.approx(1.5)


def test_profit_factor_without_losses_is_zero() -> None:
    stats = win_loss_stats([make_trade(2, ts(5)), make_trade(3, ts(6))])
    assert (stats.wins, stats.losses) == (2, 0)
    assert stats.profit_factor == 0.0
    assert stats.expectancy == pytest.approx(2.5)


def test_equity_curve_is_chronological_and_ends_at_total() -> None:
    trades = [make_trade(2, ts(7)), make_trade(-1, ts(5)), make_trade(4, ts(6))]
    curve = equity_curve(trades)
    stamps = [point.timestamp for point in curve]
    assert stamps == sorted(stamps)
    assert [point.equity for point in curve] == pytest.approx([-1, 3, 5])
    assert curve[-1].equity == pytest.approx(total_pnl(trades).pnl)
    assert equity_curve(trades) == curve


def test_drawdown_tracks_running_peak() -> None:
    trades = [make_trade(5, ts(5)), make_trade(-3, ts(6)), make_trade(-4, ts(7)), make_trade(10, ts(8))]
    result = drawdown_series(equity_curve(trades))
    assert [point.drawdown for point in result.series] == pytest.approx([0, -3, -7, 0])
    assert [point.drawdown_pct for point in result.series] == pytest.approx([0, -0.6, -1.4, 0])
    assert result.max_drawdown == pytest.approx(-7)
    assert all(point.drawdown <= 0 for point in result.series)
    assert result.max_drawdown == min(point.drawdown for point in result.series)


def test_drawdown_with_losses_from_flat_has_zero_pct() -> None:
    result = drawdown_series(equity_curve([make_trade(-2, ts(5))]))
    assert result.series[0].drawdown == pytest.approx(-2)
    assert result.series[0].drawdown_pct == 0.0


def test_volume_and_fees_include_open_legs(scenario_fills) -> None:
    fills = scenario_fills + [make_fill("JUP/USDC", quantity=3, price=2, fee=0.02, fee_type="funding", timestamp=ts(7))]
    result = volume_and_fees(fills)
    assert result.volume == pytest.approx(20 + 24 + 8 + 9 + 6)
    assert result.fee_total == pytest.approx(0.32)
    assert result.fee_breakdown == pytest.approx({"taker": 0.25, "maker": 0.05, "funding": 0.02})


def test_average_duration() -> None:
    trades = [make_trade(1, ts(5)), make_trade(1, ts(6))]
    assert average_duration(trades) == 1800.0


def test_long_short_ratio() -> None:
    only_long = long_short_ratio([make_trade(1, ts(5)), make_trade(1, ts(6))])
    assert (only_long.long_count, only_long.short_count, only_long.ratio) == (2, 0, 2.0)
    assert only_long.bias == "long"

    mixed = long_short_ratio(
        [make_trade(1, ts(5)), make_trade(1, ts(6), side="short"), make_trade(1, ts(7), side="short")]
    )
    assert mixed.ratio == 0.5
    assert mixed.bias == "short"

    assert long_short_ratio([]).bias == "balanced"


def test_order_type_performance_counts_mixed_trades_in_both() -> None:
    trades = [
        make_trade(2, ts(5), total_fees=0.1, order_types=("limit", "market")),
        make_trade(-1, ts(6), total_fees=0.2, order_types=("market", "market")),
    ]
    result = order_type_performance(trades)
    assert set(result) == {"market", "limit", "stop", "other"}
    assert result["market"].trades == 2
    assert result["market"].wins == 1
    assert result["market"].pnl == pytest.approx(1.0)
    assert result["market"].fees == pytest.approx(0.3)
    assert result["limit"].trades == 1
    assert result["stop"].trades == 0


def test_time_performance_buckets_by_close_in_zone() -> None:
    trades = [
        make_trade(2, ts(5, 10)),
        make_trade(3, ts(5, 10, 30)),
        make_trade(-1, ts(6, 23)),
    ]
    result = time_performance(trades, timezone.utc)
    assert result.daily == pytest.approx({"2026-01-05": 5.0, "2026-01-06": -1.0})
    assert result.weekday == pytest.approx({"Mon": 5.0, "Tue": -1.0})
    assert result.hourly == pytest.approx({"10": 5.0, "23": -1.0})
    assert list(result.weekday) == [name for name in WEEKDAY_NAMES if name in result.weekday]


def test_naive_close_times_are_read_as_utc() -> None:
    naive = datetime(2026, 1, 5, 23, 30)
    plus_two = timezone(timedelta(hours=2))
    assert to_zone(naive, plus_two) == ts(5, 23, 30)
    assert to_zone(naive, plus_two).hour == 1

    result = time_performance([make_trade(4, naive)], plus_two)
    assert result.daily == pytest.approx({"2026-01-06": 4.0})
    assert result.hourly == pytest.approx({"01": 4.0})


def test_symbol_breakdown_rows_are_complete() -> None:
    trades = [
        make_trade(2, ts(5), symbol="DRV/USDC", entry_price=10, quantity=2, total_fees=0.1),
        make_trade(-1, ts(6), symbol="SOL/USDC", entry_price=8),
        make_trade(4, ts(7), symbol="DRV/USDC", entry_price=12, quantity=1, total_fees=0.2),
    ]
    rows = symbol_breakdown(trades)
    assert [row.symbol for row in rows] == ["DRV/USDC", "SOL/USDC"]
    assert sum(row.trades for row in rows) == len(trades)
    drv = rows[0]
    assert drv.trades == 2
    assert drv.wins == 2
    assert drv.win_rate == 1.0
    assert drv.pnl == pytest.approx(6.0)
    assert drv.volume == pytest.approx(32.0)
    assert drv.fees == pytest.approx(0.3)
    assert rows[1].pnl == pytest.approx(-1.0)


def test_build_report_bundles_analytics(scenario_fills) -> None:
    report = build_report(scenario_fills, FilterState(), timezone.utc)
    assert report["fill_count"] == 4
    assert report["symbols"] == ["DRV/USDC", "SOL/USDC"]
    assert report["total_pnl"]["pnl"] == pytest.approx(2.7)
    assert report["win_loss"]["trade_count"] == 2
    assert len(report["equity_curve"]) == 2
    assert len(report["trades"]) == 2
    assert report["long_short"]["bias"] == "balanced"


def test_build_report_applies_filters(scenario_fills) -> None:
    report = build_report(scenario_fills, FilterState(symbol="SOL/USDC"), timezone.utc)
    assert report["fill_count"] == 2
    assert report["total_pnl"]["pnl"] == pytest.approx(-1.1)
    assert [row["symbol"] for row in report["symbol_breakdown"]] == ["SOL/USDC"]
