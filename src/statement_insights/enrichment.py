"""Case-level enrichment: funding transfers and bank statement insights."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import replace
from decimal import Decimal
from typing import Any

from statement_insights.models import (
    AccountEnrichment,
    BsiSummary,
    McaTransaction,
    NormalizedAccount,
    ReconciliationRow,
)
from statement_insights.utils import to_decimal, to_integer

CASE_PATTERN = re.compile(r"Case(\d+)")
CASE_NUMBER_PATTERN = re.compile(r"Case(\d+)", re.IGNORECASE)

FUNDING_TRANSFER_BUCKETS = (
    "mca_deposit",
    "returned_items",
    "internal_transfer_deposit",
    "other_transfer_deposit",
    "standard_deposit",
)


class InvalidCaseIdError(ValueError):
    """Raised when a case id does not contain a case number."""


def extract_case_number(case_id: str) -> str:
    """
    Extract the case number from a case id.

    Example: "Case101" -> "101"

    Raises:
        InvalidCaseIdError: If no "Case<digits>" part is present
    """
    match = CASE_NUMBER_PATTERN.search(case_id)
    if not match:
        raise InvalidCaseIdError(f"Invalid caseId format: {case_id}")
    return match.group(1)


def match_case_directory(case_id: str, directories: Iterable[str]) -> str | None:
    """
    Find the directory belonging to a case.

    Directory names carry a prefix before the case, e.g. "01_Case101";
    the "Case<digits>" part must equal case_id exactly.

    Args:
        case_id: Case identifier such as "Case101"
        directories: Directory paths to search

    Returns:
        Matching directory path, or None
    """
    for directory in directories:
        name = directory.rstrip("/").split("/")[-1]
        match = CASE_PATTERN.search(name)
        if match and match.group(0) == case_id:
            return directory
    return None


def funding_transfer_filename(case_id: str) -> str:
    """Name of the funding transfer file for a case, e.g. "Case1.json"."""
    return f"Case{extract_case_number(case_id)}.json"


def bsi_analysis_filename(case_id: str) -> str:
    """Name of the bank statement insight file for a case."""
    return f"{case_id}_bsi_analysis.json"


def count_funding_transfers(account: Mapping[str, Any]) -> int:
    """Count deposits flagged non_true_revenue across all deposit buckets."""
    total = 0
    for bucket in FUNDING_TRANSFER_BUCKETS:
        items = account.get(bucket)
        if not isinstance(items, list):
            continue
        total += sum(
            1
            for item in items
            if isinstance(item, Mapping) and item.get("non_true_revenue") == 1
        )
    return total


def _mca_transactions(items: Any) -> tuple[McaTransaction, ...]:
    if not isinstance(items, list):
        return ()
    return tuple(
        McaTransaction(
            mca_name=str(item.get("mca_name") or ""),
            date=str(item.get("date") or ""),
            type=str(item.get("type") or ""),
            description=str(item.get("description") or ""),
            amount=to_decimal(item.get("amount")),
        )
        for item in items
        if isinstance(item, Mapping)
    )


def summarize_bsi_account(account: Mapping[str, Any]) -> BsiSummary:
    """Normalize one account entry of a bank statement insight file."""
    metrics = account.get("summary_metrics")
    if not isinstance(metrics, Mapping):
        metrics = {}

    return BsiSummary(
        account_number=str(account.get("account_number") or "").strip(),
        account_type=str(account.get("account_type") or "").strip(),
        mca_deposit_count=to_integer(metrics.get("mca_deposit_count")),
        mca_withdrawal_count=to_integer(metrics.get("mca_withdrawal_count")),
        returned_items_count=to_integer(metrics.get("returned_items_count")),
        returned_items_days=to_integer(metrics.get("returned_items_days")),
        overdraft_count=to_integer(metrics.get("overdraft_count")),
        overdraft_days=to_integer(metrics.get("overdraft_days")),
        mca_deposits=_mca_transactions(account.get("mca_deposit")),
        mca_withdrawals=_mca_transactions(account.get("mca_withdrawal")),
    )


def parsed_accounts(document: Any) -> list[Mapping[str, Any]]:
    """
    Get the account list from an enrichment document.

    Raises:
        ValueError: If parsed_json.accounts is missing or not a list
    """
    detail = document.get("parsed_json") if isinstance(document, Mapping) else None
    accounts = detail.get("accounts") if isinstance(detail, Mapping) else None
    if not isinstance(accounts, list):
        raise ValueError("Invalid file structure: missing parsed_json.accounts")
    return [account for account in accounts if isinstance(account, Mapping)]


def funding_transfer_counts(document: Any) -> dict[str, int]:
    """Map account number to funding transfer count for a case document."""
    return {
        str(account.get("account_number") or "").strip(): count_funding_transfers(account)
        for account in parsed_accounts(document)
    }


def bsi_summaries(document: Any) -> dict[str, BsiSummary]:
    """Map account number to BsiSummary for a case document."""
    summaries = [summarize_bsi_account(account) for account in parsed_accounts(document)]
    return {summary.account_number: summary for summary in summaries}


def overlay_bsi(account: NormalizedAccount, bsi: BsiSummary) -> NormalizedAccount:
    """Return a copy of the account with insight metrics applied."""
    mca_withdrawals = account.mca_withdrawals
    if bsi.mca_withdrawals:
        mca_withdrawals = sum(
            (abs(transaction.amount) for transaction in bsi.mca_withdrawals),
            Decimal(0),
        )

    return replace(
        account,
        mca_withdrawals=mca_withdrawals,
        returned_items_count=bsi.returned_items_count,
        returned_items_days=bsi.returned_items_days,
        overdraft_days=bsi.overdraft_days,
    )


def enrich_accounts(
    row: ReconciliationRow,
    bsi: Mapping[str, BsiSummary] | None = None,
    funding: Mapping[str, int] | None = None,
) -> list[AccountEnrichment]:
    """
    Combine a row's accounts with enrichment data for its case.

    Accounts are matched by account number. The row itself is left
    untouched; overlaid accounts are new objects.

    Args:
        row: Reconciliation row
        bsi: Account number -> BsiSummary
        funding: Account number -> funding transfer count

    Returns:
        One AccountEnrichment per account, in row order
    """
    bsi = bsi or {}
    funding = funding or {}

    enriched = []
    for account in row.accounts:
        summary = bsi.get(account.account_number)
        enriched.append(
            AccountEnrichment(
                account=overlay_bsi(account, summary) if summary else account,
                funding_transfer_count=funding.get(account.account_number, 0),
                bsi=summary,
            )
        )
    return enriched
