from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from fill_journal.cli import add_filter_arguments, filters_from_args, read_fills
from fill_journal.config.app_config import load_app_config
from fill_journal.metrics.report import build_report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute aggregate trade metrics.")
    parser.add_argument(
        "fills_path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to a fills file (csv/tsv/json). Reads the configured store when omitted.",
    )
    add_filter_arguments(parser)
    parser.add_argument("--json", action="store_true", help="Print JSON output.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    args = parser.parse_args(argv)

    app_config = load_app_config()
    try:
        filters = filters_from_args(args)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    fills = read_fills(args.fills_path, filters, app_config)
    report = build_report(fills, filters, app_config.analytics.tz)

    if args.json or (args.out is not None and args.out.suffix.lower() == ".json"):
        text = json.dumps(report, indent=2, sort_keys=True)
    else:
        text = _format_report(report)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")

    return 0


def _format_report(report: dict[str, Any]) -> str:
    pnl = report["total_pnl"]
    volume = report["volume_and_fees"]
    win_loss = report["win_loss"]
    long_short = report["long_short"]
    lines = [
        f"fills {report['fill_count']}",
        f"trades {win_loss['trade_count']}",
        f"wins {win_loss['wins']}",
        f"losses {win_loss['losses']}",
        f"win_rate {_format_float(win_loss['win_rate'])}",
        f"profit_factor {_format_float(win_loss['profit_factor'])}",
        f"expectancy {_format_float(win_loss['expectancy'])}",
        f"avg_win {_format_float(win_loss['avg_win'])}",
        f"avg_loss {_format_float(win_loss['avg_loss'])}",
        f"largest_win {_format_float(win_loss['largest_win'])}",
        f"largest_loss {_format_float(win_loss['largest_loss'])}",
        f"total_pnl {_format_float(pnl['pnl'])}",
        f"total_pnl_pct {_format_float(pnl['pnl_pct'])}",
        f"volume {_format_float(volume['volume'])}",
        f"fees {_format_float(volume['fee_total'])}",
        f"max_drawdown {_format_float(report['drawdown']['max_drawdown'])}",
        f"avg_duration_seconds {_format_float(report['average_duration_seconds'])}",
        f"long_short {long_short['long_count']}/{long_short['short_count']} ({long_short['bias']})",
    ]
    for fee_type, amount in sorted(volume["fee_breakdown"].items()):
        lines.append(f"fees_{fee_type} {_format_float(amount)}")
    for row in report["symbol_breakdown"]:
        lines.append(
            f"symbol {row['symbol']} trades {row['trades']} pnl {_format_float(row['pnl'])} "
            f"win_rate {_format_float(row['win_rate'])}"
        )
    return "\n".join(lines)


def _format_float(value: float | None) -> str:
    return "na" if value is None else f"{value:.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
