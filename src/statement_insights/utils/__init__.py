"""Utility functions for statement-insights."""

from statement_insights.utils.parsing import (
    display_filename,
    month_abbreviation,
    month_date_range,
    to_decimal,
    to_integer,
)

__all__ = [
    "to_decimal",
    "to_integer",
    "month_abbreviation",
    "month_date_range",
    "display_filename",
]
