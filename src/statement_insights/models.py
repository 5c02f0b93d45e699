"""Data models for normalized statement reconciliation."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class NormalizedAccount:
    """Represents one bank account from a statement, with clean numeric fields."""

    account_number: str
    account_type: str
    starting_balance: Decimal
    ending_balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    average_balance: Decimal = Decimal(0)
    no_of_deposits: int = 0
    no_of_withdrawals: int = 0
    mca_withdrawals: Decimal = Decimal(0)
    returned_items_count: int = 0
    returned_items_days: int = 0
    overdraft_days: int = 0

    def __post_init__(self) -> None:
        """Debits are stored as a magnitude."""
        if self.total_debits < 0:
            object.__setattr__(self, "total_debits", abs(self.total_debits))

    def to_dict(self) -> dict[str, str | int]:
        """Convert to dictionary for JSON/CSV output."""
        return {
            "account_number": self.account_number,
            "account_type": self.account_type,
            "starting_balance": str(self.starting_balance),
            "ending_balance": str(self.ending_balance),
            "total_credits": str(self.total_credits),
            "total_debits": str(self.total_debits),
            "average_balance": str(self.average_balance),
            "no_of_deposits": self.no_of_deposits,
            "no_of_withdrawals": self.no_of_withdrawals,
            "mca_withdrawals": str(self.mca_withdrawals),
            "returned_items_count": self.returned_items_count,
            "returned_items_days": self.returned_items_days,
            "overdraft_days": self.overdraft_days,
        }


@dataclass(frozen=True)
class ReconciliationVerdict:
    """Outcome of checking start - debits + credits against the ending balance."""

    calculated_balance: Decimal
    difference: Decimal
    is_reconciled: bool


@dataclass(frozen=True)
class ReconciliationRow:
    """One bank statement, with every account it covers."""

    case_id: str
    bank_name: str
    period_label: str
    first_transaction_date: str
    last_transaction_date: str
    document_name: str
    accounts: tuple[NormalizedAccount, ...] = ()
    source_filename: str = ""

    @property
    def is_reconciled(self) -> bool:
        """Return True if every account on the statement reconciles."""
        from statement_insights.reconciliation import reconcile

        return all(reconcile(account).is_reconciled for account in self.accounts)

    def select_account(self, index: int) -> NormalizedAccount | None:
        """Get account at index, falling back to the first account."""
        if not self.accounts:
            return None
        if 0 <= index < len(self.accounts):
            return self.accounts[index]
        return self.accounts[0]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "case_id": self.case_id,
            "bank_name": self.bank_name,
            "period_label": self.period_label,
            "first_transaction_date": self.first_transaction_date,
            "last_transaction_date": self.last_transaction_date,
            "document_name": self.document_name,
            "accounts": [account.to_dict() for account in self.accounts],
            "source_filename": self.source_filename,
        }


@dataclass(frozen=True)
class McaTransaction:
    """A merchant cash advance deposit or withdrawal line."""

    mca_name: str
    date: str
    type: str
    description: str
    amount: Decimal


@dataclass(frozen=True)
class BsiSummary:
    """Per-account bank statement insight metrics for a case."""

    account_number: str
    account_type: str
    mca_deposit_count: int = 0
    mca_withdrawal_count: int = 0
    returned_items_count: int = 0
    returned_items_days: int = 0
    overdraft_count: int = 0
    overdraft_days: int = 0
    mca_deposits: tuple[McaTransaction, ...] = ()
    mca_withdrawals: tuple[McaTransaction, ...] = ()


@dataclass(frozen=True)
class AccountEnrichment:
    """A normalized account overlaid with case-level enrichment data."""

    account: NormalizedAccount
    funding_transfer_count: int = 0
    bsi: BsiSummary | None = None
