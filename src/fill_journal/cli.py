from __future__ import annotations

import argparse
import sys
from pathlib import Path

from fill_journal.config.app_config import AppConfig, load_app_config
from fill_journal.filters import ALL, FilterState, apply_fill_filters, apply_trade_filters, parse_date
from fill_journal.ingest.csv_fills import load_fills
from fill_journal.metrics.breakdowns import to_zone
from fill_journal.models import Fill
from fill_journal.reconstruct.trades import derive_trades
from fill_journal.storage.repository import open_repository


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Derive round-trip trades from fills.")
    parser.add_argument(
        "fills_path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to a fills file (csv/tsv/json). Reads the configured store when omitted.",
    )
    add_filter_arguments(parser)
    parser.add_argument(
        "--utc",
        action="store_true",
        help="Print timestamps in UTC instead of the configured timezone.",
    )
    parser.add_argument("--out", type=Path, default=None, help="Write trades to a file instead of stdout.")
    args = parser.parse_args(argv)

    app_config = load_app_config()
    tz = app_config.analytics.tz
    try:
        filters = filters_from_args(args)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    fills = read_fills(args.fills_path, filters, app_config)
    trades = apply_trade_filters(derive_trades(fills), filters, tz)

    if not trades:
        print("No trades derived.")
        return 0

    output = ["symbol side qty entry_px exit_px close_time fees pnl return_pct"]
    for trade in trades:
        closed = trade.close_timestamp if args.utc else to_zone(trade.close_timestamp, tz)
        output.append(
            f"{trade.symbol} {trade.side} {trade.quantity:.6g} {trade.entry_price:.6g} "
            f"{trade.exit_price:.6g} {closed.isoformat()} {trade.total_fees:.6g} "
            f"{trade.pnl:.6g} {trade.return_pct:.4%}"
        )

    if args.out is None:
        for line in output:
            print(line)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text("\n".join(output) + "\n", encoding="utf-8")

    return 0


def add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", type=str, default=None, help="First close date to include (YYYY-MM-DD).")
    parser.add_argument("--end", type=str, default=None, help="Last close date to include (YYYY-MM-DD).")
    parser.add_argument("--symbol", type=str, default=ALL, help="Filter by symbol.")
    parser.add_argument("--market-type", type=str, default=ALL, help="spot, perp or options.")
    parser.add_argument("--side", type=str, default=ALL, help="long or short.")
    parser.add_argument("--order-type", type=str, default=ALL, help="market, limit, stop or other.")
    parser.add_argument("--search", type=str, default="", help="Substring of symbol or tx reference.")
    parser.add_argument("--account", type=str, default=None, help="Account id to restrict to.")


def filters_from_args(args: argparse.Namespace) -> FilterState:
    return FilterState(
        start_date=parse_date(args.start),
        end_date=parse_date(args.end),
        symbol=args.symbol,
        market_type=args.market_type,
        side=args.side,
        search=args.search.strip(),
        account_id=args.account,
        order_type=args.order_type,
    )


def read_fills(path: Path | None, filters: FilterState, app_config: AppConfig) -> list[Fill]:
    if path is None:
        return open_repository(app_config).get_fills(filters)
    result = load_fills(path)
    if result.errors:
        print(f"Skipped {len(result.errors)} invalid fill fields during validation.", file=sys.stderr)
    return apply_fill_filters(result.fills, filters, app_config.analytics.tz)


if __name__ == "__main__":
    raise SystemExit(main())
