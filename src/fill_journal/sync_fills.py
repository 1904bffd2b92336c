from __future__ import annotations

import argparse
import sys

from fill_journal.config.app_config import load_app_config
from fill_journal.ingest.sync import build_provider, run_account_sync
from fill_journal.storage.repository import open_repository


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sync fills for a linked wallet account.")
    parser.add_argument("wallet", type=str, help="Wallet address to sync.")
    parser.add_argument("--chain", type=str, default="solana", help="Chain the wallet lives on.")
    parser.add_argument("--label", type=str, default=None, help="Label used when linking a new account.")
    args = parser.parse_args(argv)

    app_config = load_app_config()
    repo = open_repository(app_config)

    account = next(
        (
            item
            for item in repo.get_accounts()
            if item.wallet_address == args.wallet and item.chain == args.chain
        ),
        None,
    )
    if account is None:
        account = repo.add_account(args.wallet, chain=args.chain, label=args.label)
        print(f"Linked {args.wallet} as {account.account_id}.")

    provider = build_provider(
        app_config.sync.provider,
        count=app_config.sync.fills_per_sync,
        spread_days=app_config.sync.spread_days,
    )
    try:
        result = run_account_sync(account, provider, repo)
    except Exception as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1

    cursor = result.next_cursor.last_synced_at
    print(
        f"Synced {account.account_id}: {result.inserted} inserted, {result.skipped} skipped; "
        f"cursor {cursor.isoformat() if cursor else 'none'}."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
