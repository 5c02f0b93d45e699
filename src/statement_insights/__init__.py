"""Statement Insights - Normalize and reconcile parsed bank statements."""

from statement_insights.models import NormalizedAccount, ReconciliationRow
from statement_insights.normalizer import StatementNormalizer, map_statement
from statement_insights.reconciliation import reconcile

__version__ = "0.1.0"
__all__ = [
    "NormalizedAccount",
    "ReconciliationRow",
    "StatementNormalizer",
    "map_statement",
    "reconcile",
]
