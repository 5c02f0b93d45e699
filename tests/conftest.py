"""Pytest configuration and fixtures."""

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from statement_insights.store import LocalDocumentStore

STORAGE_ENV_VARS = (
    "AZURE_STORAGE_ACCOUNT_NAME",
    "AZURE_STORAGE_ACCOUNT_KEY",
    "AZURE_STORAGE_SAS_TOKEN",
    "AZURE_STORAGE_FILE_SYSTEM_NAME",
    "AZURE_STORAGE_DIRECTORY_PATH",
    "AZURE_STORAGE_DIRECTORY_PATH_MCA",
    "FUNDING_TRANSFER_DEPOSIT_PATH",
)


@pytest.fixture(autouse=True)
def clean_storage_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real storage credentials out of every test."""
    for name in STORAGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_package_logger() -> Iterator[None]:
    """Undo handlers installed by setup_logging."""
    logger = logging.getLogger("statement_insights")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def chase_record(fixtures_dir: Path) -> dict[str, Any]:
    """Return the two-account August 2025 statement record."""
    path = fixtures_dir / "statements" / "chase_aug_2025_parsing_result.json"
    record: dict[str, Any] = json.loads(path.read_text())
    record["filename"] = path.name
    return record


@pytest.fixture
def wells_record(fixtures_dir: Path) -> dict[str, Any]:
    """Return the February 2024 statement record with string-typed fields."""
    path = fixtures_dir / "statements" / "wells_feb_2024_parsing_result.json"
    record: dict[str, Any] = json.loads(path.read_text())
    record["filename"] = path.name
    return record


@pytest.fixture
def local_store(fixtures_dir: Path) -> LocalDocumentStore:
    """Return a document store over the fixtures directory."""
    return LocalDocumentStore(fixtures_dir, directory_path="statements")


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Return a builder for minimal statement records."""

    def build(accounts: list[Any] | None = None, **detail: Any) -> dict[str, Any]:
        parsed_json: dict[str, Any] = {
            "bank_name": "Test Bank",
            "statement_month": 8,
            "statement_year": 2025,
            "accounts": accounts if accounts is not None else [],
        }
        parsed_json.update(detail)
        return {"batch_id": "Case1", "parsed_json": parsed_json}

    return build
