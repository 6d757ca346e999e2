#!/usr/bin/env python3
"""Fire concurrent random transfers against an in-memory ledger.

Seeds generated accounts, runs transfers from a thread pool and then
verifies that no balance went negative and that the total amount of money
is unchanged.

Usage:
    python scripts/simulate_transfers.py
    python scripts/simulate_transfers.py --accounts 50 --transfers 5000 --workers 16
    python scripts/simulate_transfers.py --notifications console --log-level DEBUG
"""

import argparse
import logging
import os
import random
import sys
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from decimal import Decimal
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from transfer_core.bootstrap import build_core
from transfer_core.config import TransferCoreConfig
from transfer_core.exceptions import TransferCoreError
from transfer_core.generators import AccountGenerator
from transfer_core.logging import configure_logging
from transfer_core.models import Account
from transfer_core.store import InMemoryLedgerStore

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Concurrent transfer simulation")
    parser.add_argument("--accounts", type=int, default=20, help="Accounts to seed")
    parser.add_argument("--transfers", type=int, default=1000, help="Transfers to attempt")
    parser.add_argument("--workers", type=int, default=8, help="Concurrent workers")
    parser.add_argument("--max-value", type=int, default=500, help="Largest transfer value")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--notifications",
        choices=["none", "console"],
        default=None,
        help="Notification backend (default: NOTIFICATION_BACKEND or none)",
    )
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    parser.add_argument("--log-format", choices=["standard", "json"], default=None, help="Overrides LOG_FORMAT")
    return parser.parse_args()


def build_config(args: argparse.Namespace) -> TransferCoreConfig:
    """Read configuration from the environment, letting CLI flags override it."""
    config = TransferCoreConfig.from_env()
    if "NOTIFICATION_BACKEND" not in os.environ or args.notifications is not None:
        backend = args.notifications or "none"
        config.notification = replace(config.notification, backend=backend)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    return config


def seed_accounts(store: InMemoryLedgerStore, count: int, seed: int) -> list[Account]:
    """Generate accounts and add them to the store."""
    generator = AccountGenerator(seed=seed)
    accounts = list(generator.generate_batch(count))
    for account in accounts:
        store.add_account(account)
    logger.info("Seeded %d accounts", len(accounts))
    return accounts


def main() -> int:
    args = parse_args()
    config = build_config(args)
    configure_logging(config)

    store = InMemoryLedgerStore()
    accounts = seed_accounts(store, args.accounts, args.seed)
    total_before = sum((a.balance for a in accounts), Decimal("0"))

    core = build_core(store, config)
    rng = random.Random(args.seed)

    def one_transfer() -> str:
        payer, payee = rng.sample(accounts, 2)
        value = Decimal(rng.randint(1, args.max_value * 100)) / 100
        try:
            core.engine.transfer_to(payer, payee.email, value)
        except TransferCoreError as exc:
            return type(exc).__name__
        return "committed"

    outcomes: Counter[str] = Counter()
    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=args.workers) as pool:
        futures = [pool.submit(one_transfer) for _ in range(args.transfers)]
        for future in as_completed(futures):
            outcomes[future.result()] += 1
    elapsed = time.perf_counter() - start
    core.close()

    final = [store.get_account(a.account_id) for a in accounts]
    total_after = sum((a.balance for a in final), Decimal("0"))
    negative = [a.account_id for a in final if a.balance < 0]

    print(f"\n{'='*60}")
    print("Transfer simulation")
    print("=" * 60)
    print(f"  attempted: {args.transfers} in {elapsed:.2f}s ({args.transfers / elapsed:.0f}/s)")
    for outcome, count in sorted(outcomes.items()):
        print(f"  {outcome}: {count}")
    print(f"  records stored: {store.summary()['transactions']}")
    print(f"  total balance before: {total_before}")
    print(f"  total balance after:  {total_after}")

    if negative or total_before != total_after or store.summary()["transactions"] != outcomes["committed"]:
        logger.error("Ledger invariants violated: negative=%s", negative)
        return 1
    print("  invariants: OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
