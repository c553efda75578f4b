#!/usr/bin/env python3
"""
Reconcile wallet holdings against the ledger from the command line.

Usage: from project root, with the package installed:
  python scripts/reconcile_wallets.py 0xabc 0xdef --dry-run
  python scripts/reconcile_wallets.py --all --source mirror

Configuration comes from the environment / .env (see holdings_recon.config).
Prints one JSON report per wallet; exits 1 if any run did not succeed.
"""
import argparse
import json
import sys
from typing import Optional

from holdings_recon.api.schemas import ReconciliationReportResponse
from holdings_recon.app_context import ReconContext
from holdings_recon.config import setup_logging
from holdings_recon.domain.models import EventSourceKind


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile cached wallet holdings against the ledger")
    parser.add_argument("wallets", nargs="*", help="Wallet addresses to reconcile")
    parser.add_argument("--all", action="store_true", help="Reconcile every wallet present in the cache")
    parser.add_argument("--dry-run", action="store_true", help="Report the repair plan without writing")
    parser.add_argument(
        "--source",
        choices=[k.value for k in EventSourceKind],
        default=None,
        help="Event source (defaults to DEFAULT_EVENT_SOURCE)",
    )
    args = parser.parse_args(argv)
    if not args.wallets and not args.all:
        parser.error("give at least one wallet address or --all")
    return args


def main(argv: Optional[list[str]] = None, context: Optional[ReconContext] = None) -> int:
    args = parse_args(argv)
    ctx = context or ReconContext()
    setup_logging(ctx.settings)
    source = EventSourceKind(args.source) if args.source else None

    try:
        if args.all:
            reports = ctx.reconciliation.reconcile_all(dry_run=args.dry_run, source=source)
        else:
            reports = ctx.reconciliation.reconcile_wallets(args.wallets, dry_run=args.dry_run, source=source)
    finally:
        if context is None:
            ctx.close()

    payload = [ReconciliationReportResponse.from_report(r).model_dump(mode="json") for r in reports]
    print(json.dumps(payload, indent=2))
    return 1 if any(r.failed for r in reports) else 0


if __name__ == "__main__":
    sys.exit(main())
