"""Tests for the statement mapper and batch normalizer."""

import csv
import logging
from collections.abc import Callable
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from statement_insights import StatementNormalizer, map_statement
from statement_insights.normalizer import (
    InvalidStatementError,
    fallback_case_id,
    map_account,
)
from statement_insights.reconciliation import reconcile

RecordFactory = Callable[..., dict[str, Any]]


class TestMapAccount:
    """Tests for map_account function."""

    def test_field_mapping(self) -> None:
        """Test raw fields land in their normalized counterparts."""
        account = map_account({
            "account_number": " 000123 ",
            "account_type": "Checking",
            "beginning_balance": "1,780.44",
            "ending_balance": 449.92,
            "total_deposits": "151,000.00",
            "total_withdrawals": "152,330.52",
            "avg_daily_balance": "3,412.08",
            "no_of_deposits": "14",
            "no_of_withdrawals": 87.0,
            "mca_withdrawals": "2,500",
            "returned_items_count": "2",
            "returned_items_days": 1,
            "overdraft_days": "3",
        })

        assert account.account_number == "000123"
        assert account.account_type == "Checking"
        assert account.starting_balance == Decimal("1780.44")
        assert account.ending_balance == Decimal("449.92")
        assert account.total_credits == Decimal("151000.00")
        assert account.total_debits == Decimal("152330.52")
        assert account.average_balance == Decimal("3412.08")
        assert account.no_of_deposits == 14
        assert account.no_of_withdrawals == 87
        assert account.mca_withdrawals == Decimal("2500")
        assert account.returned_items_count == 2
        assert account.returned_items_days == 1
        assert account.overdraft_days == 3

    @pytest.mark.parametrize("withdrawals", [-152330.52, 152330.52, "-152,330.52"])
    def test_debits_are_magnitude(self, withdrawals: object) -> None:
        """Test withdrawals normalize to a positive total regardless of sign."""
        account = map_account({"total_withdrawals": withdrawals})
        assert account.total_debits == Decimal("152330.52")

    def test_average_balance_sentinel(self) -> None:
        """Test NA average balance becomes zero."""
        assert map_account({"avg_daily_balance": "NA"}).average_balance == 0

    def test_missing_fields_default(self) -> None:
        """Test an empty account normalizes to zeros and empty text."""
        account = map_account({})

        assert account.account_number == ""
        assert account.account_type == ""
        assert account.starting_balance == 0
        assert account.total_debits == 0
        assert account.no_of_deposits == 0
        assert account.mca_withdrawals == 0
        assert account.returned_items_count == 0
        assert account.returned_items_days == 0
        assert account.overdraft_days == 0

    def test_non_mapping_account(self) -> None:
        """Test a non-object account entry becomes all defaults."""
        assert map_account("garbage") == map_account({})
        assert map_account(None) == map_account({})


class TestMapStatement:
    """Tests for map_statement function."""

    def test_chase_statement(self, chase_record: dict[str, Any]) -> None:
        """Test a full two-account statement."""
        row = map_statement(chase_record)

        assert row.case_id == "Case101"
        assert row.bank_name == "JPMorgan Chase Bank"
        assert row.period_label == "AUG 2025"
        assert row.first_transaction_date == "8/1/2025"
        assert row.last_transaction_date == "8/31/2025"
        assert row.document_name == "Statement_AUG_2025.pdf"
        assert row.source_filename == "chase_aug_2025"
        assert len(row.accounts) == 2
        assert row.accounts[0].account_number == "000000123456789"
        assert row.accounts[0].total_debits == Decimal("152330.52")
        assert row.accounts[1].average_balance == 0
        assert row.is_reconciled is True

    def test_string_month_and_leap_year(self, wells_record: dict[str, Any]) -> None:
        """Test month/year given as text, February of a leap year."""
        row = map_statement(wells_record)

        assert row.period_label == "FEB 2024"
        assert row.first_transaction_date == "2/1/2024"
        assert row.last_transaction_date == "2/29/2024"
        assert row.is_reconciled is False

    def test_common_year_february(self, make_record: RecordFactory) -> None:
        """Test February 2025 ends on the 28th."""
        row = map_statement(make_record(statement_month=2, statement_year=2025))
        assert row.last_transaction_date == "2/28/2025"

    def test_defaults_for_missing_period(self, make_record: RecordFactory) -> None:
        """Test missing month and year default to JAN 2025."""
        row = map_statement(make_record(statement_month=None, statement_year=None))

        assert row.period_label == "JAN 2025"
        assert row.first_transaction_date == "1/1/2025"
        assert row.last_transaction_date == "1/31/2025"
        assert row.document_name == "Statement_JAN_2025.pdf"

    def test_out_of_range_month(self, make_record: RecordFactory) -> None:
        """Test an unknown month shows its literal value."""
        row = map_statement(make_record(statement_month=13))

        assert row.period_label == "13 2025"
        # Date range falls back to January rather than rolling into next year
        assert row.first_transaction_date == "1/1/2025"

    def test_accounts_keep_order(self, make_record: RecordFactory) -> None:
        """Test accounts are mapped in their original order."""
        accounts = [{"account_number": str(n)} for n in range(5)]
        row = map_statement(make_record(accounts))

        assert [a.account_number for a in row.accounts] == ["0", "1", "2", "3", "4"]

    def test_missing_accounts(self, make_record: RecordFactory) -> None:
        """Test a detail object without accounts is a structural error."""
        record = make_record()
        del record["parsed_json"]["accounts"]

        with pytest.raises(InvalidStatementError, match="accounts"):
            map_statement(record)

    def test_empty_accounts(self, make_record: RecordFactory) -> None:
        """Test an empty account list maps to a row without accounts."""
        row = map_statement(make_record([]))

        assert row.accounts == ()
        assert row.is_reconciled is True

    def test_out_of_range_values_degrade(self, make_record: RecordFactory) -> None:
        """Test huge values become zero and the row still reconciles."""
        row = map_statement(make_record([{
            "beginning_balance": "100.00",
            "ending_balance": "1e30",
            "total_deposits": "1e999999999",
            "total_withdrawals": 1e300,
            "no_of_deposits": "9" * 5000,
        }]))

        account = row.accounts[0]
        assert account.ending_balance == 0
        assert account.total_credits == 0
        assert account.total_debits == 0
        assert account.no_of_deposits == 0
        assert reconcile(account).difference == Decimal("-100.00")

    def test_malformed_accounts_degrade(self, make_record: RecordFactory) -> None:
        """Test malformed numeric fields never fail the statement."""
        row = map_statement(make_record([{
            "beginning_balance": "n/a",
            "ending_balance": None,
            "total_deposits": "",
            "total_withdrawals": "NA",
            "no_of_deposits": "many",
        }]))

        account = row.accounts[0]
        assert account.starting_balance == 0
        assert account.ending_balance == 0
        assert account.no_of_deposits == 0

    def test_missing_filename(self, make_record: RecordFactory) -> None:
        """Test missing filename is shown as empty text."""
        assert map_statement(make_record()).source_filename == ""

    def test_missing_parsed_json(self) -> None:
        """Test an envelope without detail is a structural error."""
        with pytest.raises(InvalidStatementError, match="parsed_json"):
            map_statement({"batch_id": "Case9"})

    def test_parsed_json_not_object(self) -> None:
        """Test non-object detail is a structural error."""
        with pytest.raises(InvalidStatementError):
            map_statement({"batch_id": "Case9", "parsed_json": "oops"})

    def test_accounts_not_list(self, make_record: RecordFactory) -> None:
        """Test a non-list accounts value is a structural error."""
        with pytest.raises(InvalidStatementError, match="accounts"):
            map_statement(make_record(accounts={"account_number": "1"}))

    def test_record_not_object(self) -> None:
        """Test a non-object record is a structural error."""
        with pytest.raises(InvalidStatementError):
            map_statement(["not", "a", "record"])

    def test_structural_error_is_value_error(self) -> None:
        """Test callers can catch ValueError."""
        with pytest.raises(ValueError):
            map_statement({})

    def test_idempotent(self, chase_record: dict[str, Any]) -> None:
        """Test mapping the same record twice gives identical rows."""
        assert map_statement(chase_record) == map_statement(chase_record)

    def test_does_not_mutate_input(self, chase_record: dict[str, Any]) -> None:
        """Test the raw record is left untouched."""
        before = repr(chase_record)
        map_statement(chase_record)
        assert repr(chase_record) == before


class TestFallbackCaseId:
    """Tests for case ids of records without a batch_id."""

    def test_generated_when_missing(self, make_record: RecordFactory) -> None:
        """Test a fallback id is generated."""
        record = make_record()
        del record["batch_id"]

        case_id = map_statement(record).case_id

        assert case_id.startswith("CASE-")
        assert case_id == fallback_case_id(record)

    def test_generated_when_empty(self, make_record: RecordFactory) -> None:
        """Test an empty batch_id is treated as missing."""
        record = make_record()
        record["batch_id"] = ""
        assert map_statement(record).case_id.startswith("CASE-")

    def test_deterministic(self, make_record: RecordFactory) -> None:
        """Test the same record always gets the same id."""
        record = make_record()
        del record["batch_id"]
        assert map_statement(record).case_id == map_statement(record).case_id

    def test_unique_within_batch(self, make_record: RecordFactory) -> None:
        """Test identical records in one batch get distinct ids."""
        record = make_record()
        del record["batch_id"]

        rows = StatementNormalizer().process_batch([record, dict(record), dict(record)])

        assert len({row.case_id for row in rows}) == 3

    def test_different_content_different_id(self, make_record: RecordFactory) -> None:
        """Test different records get different ids."""
        first = make_record(bank_name="A")
        second = make_record(bank_name="B")
        assert fallback_case_id(first) != fallback_case_id(second)


class TestStatementNormalizer:
    """Tests for StatementNormalizer batch processing."""

    def test_drops_invalid_item(self, make_record: RecordFactory) -> None:
        """Test a batch of three with a broken middle item yields two rows."""
        first = make_record(bank_name="First")
        broken = {"batch_id": "Case2", "filename": "broken_parsing_result.json"}
        third = make_record(bank_name="Third")

        normalizer = StatementNormalizer()
        rows = normalizer.process_batch([first, broken, third])

        assert [row.bank_name for row in rows] == ["First", "Third"]
        assert len(normalizer.errors) == 1
        assert normalizer.errors[0][0] == "broken_parsing_result.json"

    def test_error_label_without_filename(self, make_record: RecordFactory) -> None:
        """Test dropped records without filename are labelled by position."""
        normalizer = StatementNormalizer()
        normalizer.process_batch([make_record(), {}])

        assert normalizer.errors[0][0] == "#1"

    def test_logs_dropped_item(
        self, make_record: RecordFactory, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test dropped records are logged."""
        with caplog.at_level(logging.WARNING, logger="statement_insights"):
            StatementNormalizer().process_batch([{"batch_id": "Case2"}])

        assert "Skipping statement" in caplog.text

    def test_unexpected_error_drops_only_that_item(
        self,
        make_record: RecordFactory,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a non-structural mapping failure does not abort the batch."""
        real_map_account = map_account

        def failing_map_account(raw: Any) -> Any:
            if raw.get("account_number") == "boom":
                raise RuntimeError("cannot map account")
            return real_map_account(raw)

        monkeypatch.setattr(
            "statement_insights.normalizer.map_account", failing_map_account
        )
        records = [
            make_record(bank_name="First"),
            make_record([{"account_number": "boom"}], bank_name="Second"),
            make_record(bank_name="Third"),
        ]
        records[1]["filename"] = "second_parsing_result.json"

        normalizer = StatementNormalizer(max_workers=4)
        with caplog.at_level(logging.ERROR, logger="statement_insights"):
            rows = normalizer.process_batch(records)

        assert [row.bank_name for row in rows] == ["First", "Third"]
        assert normalizer.errors == [
            ("second_parsing_result.json", "RuntimeError: cannot map account")
        ]
        assert "second_parsing_result.json" in caplog.text

    def test_empty_batch(self) -> None:
        """Test an empty batch is not an error."""
        normalizer = StatementNormalizer()
        assert normalizer.process_batch([]) == []
        assert normalizer.errors == []

    def test_errors_reset_between_batches(self, make_record: RecordFactory) -> None:
        """Test errors only describe the latest batch."""
        normalizer = StatementNormalizer()
        normalizer.process_batch([{}])
        normalizer.process_batch([make_record()])

        assert normalizer.errors == []

    def test_thread_pool_keeps_order(self, make_record: RecordFactory) -> None:
        """Test concurrent mapping preserves input order."""
        records: list[Any] = [make_record(bank_name=f"Bank {n}") for n in range(20)]
        records.insert(7, {"batch_id": "bad"})

        normalizer = StatementNormalizer(max_workers=4)
        rows = normalizer.process_batch(records)

        assert [row.bank_name for row in rows] == [f"Bank {n}" for n in range(20)]
        assert len(normalizer.errors) == 1

    def test_write_csv(self, chase_record: dict[str, Any], wells_record: dict[str, Any],
                       tmp_path: Path) -> None:
        """Test writing one line per account."""
        normalizer = StatementNormalizer()
        rows = normalizer.process_batch([chase_record, wells_record])
        output_path = tmp_path / "reconciliation.csv"

        normalizer.write_csv(rows, output_path)

        with open(output_path, newline="") as f:
            lines = list(csv.reader(f))

        assert lines[0][0] == "Case ID"
        assert len(lines) == 1 + 3
        assert lines[1][0] == "Case101"
        assert lines[1][8] == "0.00"
        assert lines[1][9] == "yes"
        assert lines[3][8] == "-100.00"
        assert lines[3][9] == "no"

    def test_write_tsv(self, chase_record: dict[str, Any], tmp_path: Path) -> None:
        """Test writing with a tab delimiter."""
        rows = StatementNormalizer().process_batch([chase_record])
        output_path = tmp_path / "reconciliation.tsv"

        StatementNormalizer.write_csv(rows, output_path, delimiter="\t")

        assert "\t" in output_path.read_text()
