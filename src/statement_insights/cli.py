#!/usr/bin/env python3
"""Command-line interface for statement-insights."""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from statement_insights.config import (
    DEFAULT_FUNDING_TRANSFER_PATH,
    DEFAULT_MCA_PATH,
    ConfigError,
    get_storage_config,
    get_storage_settings,
    load_config,
)
from statement_insights.enrichment import InvalidCaseIdError, enrich_accounts
from statement_insights.log import setup_logging
from statement_insights.models import ReconciliationRow
from statement_insights.normalizer import StatementNormalizer
from statement_insights.reconciliation import reconcile
from statement_insights.store import (
    DataLakeDocumentStore,
    DocumentStore,
    DocumentStoreError,
    LocalDocumentStore,
)


def build_store(args: argparse.Namespace, config: dict[str, Any] | None) -> DocumentStore:
    """Create the document store selected on the command line."""
    if args.local:
        settings = get_storage_settings(config)
        return LocalDocumentStore(
            Path(args.local),
            directory_path=settings.get("directory_path") or "",
            mca_directory_path=settings.get("mca_directory_path") or DEFAULT_MCA_PATH,
            funding_transfer_path=(
                settings.get("funding_transfer_path") or DEFAULT_FUNDING_TRANSFER_PATH
            ),
            max_workers=args.workers,
        )
    return DataLakeDocumentStore(get_storage_config(config), max_workers=args.workers)


def print_summary(rows: list[ReconciliationRow]) -> None:
    """Print one line per account with its reconciliation status."""
    for row in rows:
        print(
            f"{row.case_id}  {row.bank_name}  {row.period_label}  "
            f"({row.first_transaction_date} - {row.last_transaction_date})"
        )
        if not row.accounts:
            print("    (no accounts)")
        for account in row.accounts:
            verdict = reconcile(account)
            status = "RECONCILED" if verdict.is_reconciled else f"OFF BY {verdict.difference}"
            print(
                f"    {account.account_number or '(unknown)':<16}  "
                f"start {account.starting_balance:>14}  "
                f"debits {account.total_debits:>14}  "
                f"credits {account.total_credits:>14}  "
                f"end {account.ending_balance:>14}  {status}"
            )


def print_case(store: DocumentStore, row: ReconciliationRow) -> None:
    """Print enrichment data for one case."""
    try:
        bsi = store.fetch_bsi_analysis(row.case_id)
    except DocumentStoreError as e:
        print(f"Warning: {e}", file=sys.stderr)
        bsi = {}

    try:
        funding = store.fetch_funding_transfer(row.case_id)
    except (DocumentStoreError, InvalidCaseIdError) as e:
        print(f"Warning: {e}", file=sys.stderr)
        funding = {}

    print(f"{row.case_id}  {row.bank_name}  {row.period_label}")
    for enriched in enrich_accounts(row, bsi, funding):
        account = enriched.account
        print(f"    {account.account_number or '(unknown)'}")
        print(f"        Funding transfers:    {enriched.funding_transfer_count}")
        print(f"        MCA withdrawals:      {account.mca_withdrawals}")
        print(f"        Returned items:       {account.returned_items_count} "
              f"({account.returned_items_days} days)")
        print(f"        Overdraft days:       {account.overdraft_days}")
        if enriched.bsi:
            print(f"        MCA deposits/withdrawals: {enriched.bsi.mca_deposit_count}/"
                  f"{enriched.bsi.mca_withdrawal_count}")
            for transaction in enriched.bsi.mca_deposits + enriched.bsi.mca_withdrawals:
                print(f"          {transaction.date}  {transaction.mca_name:<20}  "
                      f"{transaction.type:<10}  {transaction.amount:>12}")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Reconcile parsed bank statements stored in Azure Data Lake",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  statement-insights
  statement-insights --local ./exports -o reconciliation.csv
  statement-insights --json
  statement-insights --case Case101

Storage settings come from config.json ("storage" section) or the
AZURE_STORAGE_* environment variables.
        """,
    )

    parser.add_argument(
        "--local",
        help="Read statements from a local directory instead of Data Lake",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Write per-account reconciliation to a CSV file",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "tsv"],
        default="csv",
        help="Output format (default: csv)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print reconciliation rows as JSON",
    )
    parser.add_argument(
        "--case",
        help="Show funding transfer and insight data for one case",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json file",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=8,
        help="Concurrent file reads (default: 8)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING", json_format=args.log_json)

    try:
        config = load_config(args.config)
        store = build_store(args, config)
        records = store.load_statements()
    except (ConfigError, DocumentStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    normalizer = StatementNormalizer()
    rows = normalizer.process_batch(records)

    print(f"Loaded {len(records)} files", file=sys.stderr)
    if normalizer.errors:
        print(f"Skipped {len(normalizer.errors)} invalid statements", file=sys.stderr)

    if args.case:
        matches = [row for row in rows if row.case_id == args.case]
        if not matches:
            print(f"Error: case {args.case} not found", file=sys.stderr)
            return 1
        print_case(store, matches[0])
        return 0

    if not rows:
        print("No statements found")
        return 0

    if args.json:
        print(json.dumps([row.to_dict() for row in rows], indent=2))
    else:
        print_summary(rows)

    if args.output:
        output_path = Path(args.output)
        delimiter = "\t" if args.format == "tsv" else ","
        normalizer.write_csv(rows, output_path, delimiter)
        print(f"Wrote {len(rows)} statements to {output_path}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
