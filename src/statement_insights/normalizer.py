"""Map raw parsing-agent records to reconciliation rows."""

import csv
import hashlib
import json
import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from statement_insights.models import NormalizedAccount, ReconciliationRow
from statement_insights.reconciliation import reconcile
from statement_insights.utils import (
    display_filename,
    month_abbreviation,
    month_date_range,
    to_decimal,
    to_integer,
)
from statement_insights.utils.parsing import DEFAULT_MONTH, normalize_year

logger = logging.getLogger(__name__)


class InvalidStatementError(ValueError):
    """Raised when a record lacks the parsed statement detail."""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def map_account(raw: Any) -> NormalizedAccount:
    """
    Normalize one raw account entry.

    Malformed or missing numeric fields become 0; withdrawals are always
    stored as a positive magnitude.

    Args:
        raw: Account mapping as emitted by the parsing agent

    Returns:
        NormalizedAccount
    """
    if not isinstance(raw, Mapping):
        raw = {}

    return NormalizedAccount(
        account_number=_text(raw.get("account_number")),
        account_type=_text(raw.get("account_type")),
        starting_balance=to_decimal(raw.get("beginning_balance")),
        ending_balance=to_decimal(raw.get("ending_balance")),
        total_credits=to_decimal(raw.get("total_deposits")),
        total_debits=abs(to_decimal(raw.get("total_withdrawals"))),
        average_balance=to_decimal(raw.get("avg_daily_balance")),
        no_of_deposits=to_integer(raw.get("no_of_deposits")),
        no_of_withdrawals=to_integer(raw.get("no_of_withdrawals")),
        mca_withdrawals=to_decimal(raw.get("mca_withdrawals")),
        returned_items_count=to_integer(raw.get("returned_items_count")),
        returned_items_days=to_integer(raw.get("returned_items_days")),
        overdraft_days=to_integer(raw.get("overdraft_days")),
    )


def fallback_case_id(raw: Mapping[str, Any], sequence: int | None = None) -> str:
    """
    Generate a case id for a record without a batch_id.

    Derived from the record content, so the same record always gets the
    same id; the batch position keeps identical records apart.
    """
    payload = json.dumps(raw, sort_keys=True, default=str)
    digest = hashlib.sha256(payload.encode()).hexdigest()[:12]
    if sequence is None:
        return f"CASE-{digest}"
    return f"CASE-{digest}-{sequence}"


def map_statement(raw: Any, sequence: int | None = None) -> ReconciliationRow:
    """
    Map one parsing-agent record to a ReconciliationRow.

    Args:
        raw: Record with batch_id, optional filename and parsed_json detail
        sequence: Position of the record in its batch, used for fallback ids

    Returns:
        ReconciliationRow

    Raises:
        InvalidStatementError: If parsed_json is missing or malformed
    """
    if not isinstance(raw, Mapping):
        raise InvalidStatementError("Record is not an object")

    detail = raw.get("parsed_json")
    if not isinstance(detail, Mapping):
        raise InvalidStatementError("Invalid statement structure: missing parsed_json")

    raw_accounts = detail.get("accounts")
    if not isinstance(raw_accounts, list):
        raise InvalidStatementError(
            "Invalid statement structure: missing parsed_json.accounts"
        )

    month = detail.get("statement_month") or DEFAULT_MONTH
    year = normalize_year(detail.get("statement_year"))
    period_label = f"{month_abbreviation(month)} {year}"
    first_date, last_date = month_date_range(month, year)

    batch_id = _text(raw.get("batch_id"))
    case_id = batch_id or fallback_case_id(raw, sequence)

    return ReconciliationRow(
        case_id=case_id,
        bank_name=_text(detail.get("bank_name")),
        period_label=period_label,
        first_transaction_date=first_date,
        last_transaction_date=last_date,
        document_name=f"Statement_{period_label.replace(' ', '_', 1)}.pdf",
        accounts=tuple(map_account(account) for account in raw_accounts),
        source_filename=display_filename(raw.get("filename")),
    )


class StatementNormalizer:
    """
    Batch driver that maps records and drops the ones that fail.

    Usage:
        normalizer = StatementNormalizer()
        rows = normalizer.process_batch(store.load_statements())
        normalizer.write_csv(rows, Path("reconciliation.csv"))
    """

    def __init__(self, max_workers: int = 1) -> None:
        """
        Initialize normalizer.

        Args:
            max_workers: Map records on a thread pool when greater than 1
        """
        self.max_workers = max_workers
        self._errors: list[tuple[str, str]] = []

    @property
    def errors(self) -> list[tuple[str, str]]:
        """Get list of (record_label, error_message) for dropped records."""
        return self._errors.copy()

    @staticmethod
    def _label(raw: Any, index: int) -> str:
        if isinstance(raw, Mapping) and raw.get("filename"):
            return str(raw["filename"])
        return f"#{index}"

    def process_record(self, raw: Any, index: int = 0) -> ReconciliationRow | None:
        """
        Map a single record, recording the error instead of raising.

        Args:
            raw: Raw statement record
            index: Position of the record in its batch

        Returns:
            ReconciliationRow, or None if the record was dropped
        """
        try:
            return map_statement(raw, sequence=index)
        except InvalidStatementError as e:
            label = self._label(raw, index)
            logger.warning("Skipping statement %s: %s", label, e)
            self._errors.append((label, str(e)))
            return None
        except Exception as e:
            label = self._label(raw, index)
            logger.exception("Failed to map statement %s", label)
            self._errors.append((label, f"{type(e).__name__}: {e}"))
            return None

    def process_batch(self, records: Iterable[Any]) -> list[ReconciliationRow]:
        """
        Map every record in a batch.

        Records are independent; a malformed one is dropped without
        affecting the others, and input order is kept.

        Args:
            records: Raw statement records

        Returns:
            List of ReconciliationRow objects
        """
        self._errors = []
        items = list(records)

        if self.max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self.process_record, raw, index)
                    for index, raw in enumerate(items)
                ]
                results = [future.result() for future in futures]
        else:
            results = [self.process_record(raw, index) for index, raw in enumerate(items)]

        rows = [row for row in results if row is not None]
        logger.debug("Mapped %d of %d statements", len(rows), len(items))
        return rows

    @staticmethod
    def write_csv(
        rows: list[ReconciliationRow],
        output_path: Path,
        delimiter: str = ",",
    ) -> None:
        """
        Write one line per account with its reconciliation verdict.

        Args:
            rows: Reconciliation rows
            output_path: Output file path
            delimiter: CSV delimiter (default comma)
        """
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, delimiter=delimiter)
            writer.writerow([
                "Case ID",
                "Bank",
                "Period",
                "Account",
                "Starting Balance",
                "Total Debits",
                "Total Credits",
                "Ending Balance",
                "Difference",
                "Reconciled",
                "Source File",
            ])
            for row in rows:
                for account in row.accounts:
                    verdict = reconcile(account)
                    writer.writerow([
                        row.case_id,
                        row.bank_name,
                        row.period_label,
                        account.account_number,
                        str(account.starting_balance),
                        str(account.total_debits),
                        str(account.total_credits),
                        str(account.ending_balance),
                        str(verdict.difference),
                        "yes" if verdict.is_reconciled else "no",
                        row.source_filename,
                    ])
