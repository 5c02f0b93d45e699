"""Balance reconciliation checks for normalized accounts."""

from decimal import ROUND_HALF_UP, Decimal

from statement_insights.models import NormalizedAccount, ReconciliationVerdict

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.005")


def round2(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculated_balance(account: NormalizedAccount) -> Decimal:
    """Ending balance implied by the statement's totals."""
    return account.starting_balance - account.total_debits + account.total_credits


def reconcile(account: NormalizedAccount) -> ReconciliationVerdict:
    """
    Check whether an account's totals produce its stated ending balance.

    The difference is rounded to cents; anything under half a cent is
    reported as exactly 0.00.

    Args:
        account: Normalized account

    Returns:
        ReconciliationVerdict for the account
    """
    calculated = calculated_balance(account)
    difference = round2(account.ending_balance - calculated)

    if abs(difference) < TOLERANCE:
        return ReconciliationVerdict(
            calculated_balance=calculated,
            difference=Decimal("0.00"),
            is_reconciled=True,
        )

    return ReconciliationVerdict(
        calculated_balance=calculated,
        difference=difference,
        is_reconciled=False,
    )
