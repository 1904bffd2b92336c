"""Round-trip trade derivation from fills."""

import pytest

from fill_journal.reconstruct.trades import derive_trades, duration_seconds

from conftest import make_fill, ts


def test_long_pair_pnl_subtracts_fees() -> None:
    fills = [
        make_fill("DRV/USDC", "long", 2, 10, 0.1, ts(5, 10)),
        make_fill("DRV/USDC", "long", 2, 12, 0.1, ts(5, 11)),
    ]
    [trade] = derive_trades(fills)
    assert trade.pnl == pytest.approx(3.8)
    assert trade.total_fees == pytest.approx(0.2)
    assert trade.quantity == 2
    assert trade.return_pct == pytest.approx(3.8 / 20)


def test_short_pair_pnl_sign() -> None:
    fills = [
        make_fill("SOL/USDC", "short", 1, 8, 0.05, ts(6, 12)),
        make_fill("SOL/USDC", "short", 1, 9, 0.05, ts(6, 13)),
    ]
    [trade] = derive_trades(fills)
    assert trade.pnl == pytest.approx(-1.1)
    assert trade.side == "short"


def test_quantity_is_smaller_leg() -> None:
    fills = [
        make_fill(quantity=3, price=10, timestamp=ts(5, 10)),
        make_fill(quantity=1, price=11, timestamp=ts(5, 11)),
    ]
    [trade] = derive_trades(fills)
    assert trade.quantity == 1
    assert trade.pnl == pytest.approx(1.0)


def test_scenario_derives_two_trades(scenario_fills) -> None:
    trades = derive_trades(scenario_fills)
    assert len(trades) == 2
    assert sum(trade.pnl for trade in trades) == pytest.approx(2.7)
    assert [trade.symbol for trade in trades] == ["DRV/USDC", "SOL/USDC"]
    assert trades[0].entry_fill_id == "f1"
    assert trades[0].exit_fill_id == "f2"


def test_odd_count_drops_trailing_fill() -> None:
    fills = [make_fill(price=10 + idx, timestamp=ts(5, 10 + idx), fill_id=f"f{idx}") for idx in range(5)]
    trades = derive_trades(fills)
    assert len(trades) == 2
    used = {trade.entry_fill_id for trade in trades} | {trade.exit_fill_id for trade in trades}
    assert "f4" not in used


def test_three_fills_pair_first_two_only() -> None:
    fills = [make_fill(timestamp=ts(5, 10 + idx), fill_id=f"f{idx}") for idx in range(3)]
    [trade] = derive_trades(fills)
    assert (trade.entry_fill_id, trade.exit_fill_id) == ("f0", "f1")


def test_single_fill_and_empty_input_produce_nothing() -> None:
    assert derive_trades([]) == []
    assert derive_trades([make_fill()]) == []


def test_groups_by_symbol_and_side() -> None:
    fills = [
        make_fill("DRV/USDC", "long", timestamp=ts(5, 10)),
        make_fill("DRV/USDC", "short", timestamp=ts(5, 11)),
        make_fill("SOL/USDC", "long", timestamp=ts(5, 12)),
    ]
    assert derive_trades(fills) == []


def test_input_order_does_not_matter(scenario_fills) -> None:
    forward = derive_trades(scenario_fills)
    backward = derive_trades(list(reversed(scenario_fills)))
    assert [trade.trade_id for trade in forward] == [trade.trade_id for trade in backward]
    assert [trade.pnl for trade in forward] == [trade.pnl for trade in backward]


def test_derivation_is_deterministic(scenario_fills) -> None:
    assert derive_trades(scenario_fills) == derive_trades(scenario_fills)


def test_equal_timestamps_pair_by_input_order() -> None:
    same = ts(5, 10)
    fills = [
        make_fill(price=10, timestamp=same, fill_id="a"),
        make_fill(price=11, timestamp=same, fill_id="b"),
        make_fill(price=12, timestamp=same, fill_id="c"),
        make_fill(price=13, timestamp=same, fill_id="d"),
    ]
    trades = derive_trades(fills)
    assert [(trade.entry_fill_id, trade.exit_fill_id) for trade in trades] == [("a", "b"), ("c", "d")]


def test_output_sorted_by_close_time() -> None:
    fills = [
        make_fill("SOL/USDC", timestamp=ts(5, 9)),
        make_fill("SOL/USDC", timestamp=ts(7, 9)),
        make_fill("DRV/USDC", timestamp=ts(5, 10)),
        make_fill("DRV/USDC", timestamp=ts(6, 10)),
    ]
    trades = derive_trades(fills)
    closes = [trade.close_timestamp for trade in trades]
    assert closes == sorted(closes)
    assert trades[0].symbol == "DRV/USDC"


def test_order_type_mix_counts_each_leg() -> None:
    fills = [
        make_fill(timestamp=ts(5, 10), order_type="limit"),
        make_fill(timestamp=ts(5, 11), order_type="stop"),
        make_fill(timestamp=ts(5, 12), order_type="market"),
        make_fill(timestamp=ts(5, 13), order_type="market"),
    ]
    first, second = derive_trades(fills)
    assert first.order_type_mix == {"market": 0, "limit": 1, "stop": 1, "other": 0}
    assert second.order_type_mix["market"] == 2
    assert sum(first.order_type_mix.values()) == 2


def test_duration_never_negative() -> None:
    assert duration_seconds(ts(5, 11), ts(5, 10)) == 0.0
    assert duration_seconds(ts(5, 10), ts(5, 11)) == 3600.0


def test_zero_price_entry_has_zero_return() -> None:
    fills = [
        make_fill(price=0.0, timestamp=ts(5, 10)),
        make_fill(price=1.0, timestamp=ts(5, 11)),
    ]
    [trade] = derive_trades(fills)
    assert trade.return_pct == 0.0
