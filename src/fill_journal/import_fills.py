from __future__ import annotations

import argparse
import sys
from pathlib import Path

from fill_journal.config.app_config import load_app_config
from fill_journal.ingest.csv_fills import build_csv_template, file_digest, import_fills, load_fills
from fill_journal.sample_fills import seed_demo_if_empty
from fill_journal.storage.repository import open_repository


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import fills into the journal store.")
    parser.add_argument(
        "fills_path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to a fills file (csv/tsv/json).",
    )
    parser.add_argument("--account", type=str, default=None, help="Account id to attach the fills to.")
    parser.add_argument("--template", action="store_true", help="Print the CSV template and exit.")
    parser.add_argument("--seed-demo", action="store_true", help="Seed demo fills when the store is empty.")
    args = parser.parse_args(argv)

    if args.template:
        print(build_csv_template())
        return 0

    app_config = load_app_config()
    repo = open_repository(app_config)

    if args.seed_demo:
        inserted = seed_demo_if_empty(repo, app_config.demo.trade_count)
        print(f"Seeded {inserted} demo fills.")
        return 0

    if args.fills_path is None:
        parser.error("fills_path is required unless --template or --seed-demo is given")

    try:
        result = load_fills(args.fills_path)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    for error in result.errors:
        print(f"row {error.row} {error.field}: {error.message}", file=sys.stderr)
    if not result.fills:
        print("No valid fills found.", file=sys.stderr)
        return 1

    record, summary = import_fills(
        repo,
        result.fills,
        source_type="csv",
        source_label=args.fills_path.name,
        file_hash=file_digest(args.fills_path.read_bytes()),
        account_id=args.account,
    )
    print(f"Imported {summary.inserted} fills ({summary.skipped} skipped) as {record.import_id}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
