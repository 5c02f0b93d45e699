"""Document stores that supply raw parsing-agent records."""

import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.filedatalake import DataLakeServiceClient

from statement_insights.config import (
    DEFAULT_FUNDING_TRANSFER_PATH,
    DEFAULT_MCA_PATH,
    StorageConfig,
)
from statement_insights.enrichment import (
    bsi_analysis_filename,
    bsi_summaries,
    funding_transfer_counts,
    funding_transfer_filename,
    match_case_directory,
)
from statement_insights.models import BsiSummary

logger = logging.getLogger(__name__)


class DocumentStoreError(RuntimeError):
    """Raised when the document store cannot be listed or read."""


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a requested document does not exist."""


class CaseNotFoundError(DocumentNotFoundError):
    """Raised when no enrichment data exists for a case."""


def _join(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


class DocumentStore(ABC):
    """Abstract base class for statement document stores."""

    MAX_WORKERS = 8

    def __init__(
        self,
        directory_path: str = "",
        mca_directory_path: str = DEFAULT_MCA_PATH,
        funding_transfer_path: str = DEFAULT_FUNDING_TRANSFER_PATH,
        max_workers: int | None = None,
    ) -> None:
        """Initialize store with the locations of each document kind."""
        self.directory_path = directory_path
        self.mca_directory_path = mca_directory_path
        self.funding_transfer_path = funding_transfer_path
        self.max_workers = max_workers or self.MAX_WORKERS

    @abstractmethod
    def list_files(self, path: str, suffix: str = ".json") -> list[str]:
        """
        List files under path, recursively.

        Args:
            path: Directory path relative to the store root
            suffix: Only include files with this suffix

        Returns:
            File paths relative to the store root

        Raises:
            DocumentStoreError: If the directory cannot be listed
        """
        pass

    @abstractmethod
    def list_directories(self, path: str) -> list[str]:
        """List immediate subdirectories of path."""
        pass

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """
        Read a file's content.

        Raises:
            DocumentNotFoundError: If the file does not exist
            DocumentStoreError: If the file cannot be read
        """
        pass

    def read_json(self, path: str) -> Any:
        """Read and decode a JSON document."""
        content = self.read_bytes(path)
        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DocumentStoreError(f"Invalid JSON in {path}: {e}") from e

    def _read_statement(self, path: str) -> dict[str, Any] | None:
        try:
            record = self.read_json(path)
        except DocumentStoreError as e:
            logger.error("Error reading file %s: %s", path, e)
            return None

        if not isinstance(record, dict):
            logger.error("Error reading file %s: not a JSON object", path)
            return None

        record["filename"] = path.split("/")[-1]
        return record

    def load_statements(self) -> list[dict[str, Any]]:
        """
        Read every statement record under the statement directory.

        Files are read concurrently. A file that cannot be read or decoded
        is logged and skipped; each record is annotated with its filename.

        Returns:
            Raw statement records in listing order

        Raises:
            DocumentStoreError: If the statement directory cannot be listed
        """
        paths = self.list_files(self.directory_path)
        logger.info("Found %d statement files", len(paths))

        if not paths:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(paths))) as executor:
            results = list(executor.map(self._read_statement, paths))

        return [record for record in results if record is not None]

    def fetch_bsi_analysis(self, case_id: str) -> dict[str, BsiSummary]:
        """
        Get bank statement insight metrics for a case.

        Args:
            case_id: Case identifier such as "Case101"

        Returns:
            Account number -> BsiSummary

        Raises:
            CaseNotFoundError: If the case directory or file is missing
            DocumentStoreError: If the file is malformed
        """
        directories = self.list_directories(self.mca_directory_path)
        matched = match_case_directory(case_id, directories)
        if matched is None:
            available = ", ".join(d.rstrip("/").split("/")[-1] for d in directories)
            logger.debug("No case directory for %s; available: %s", case_id, available)
            raise CaseNotFoundError(f"No directory found matching case: {case_id}")

        path = _join(matched, bsi_analysis_filename(case_id))
        try:
            document = self.read_json(path)
        except DocumentNotFoundError as e:
            raise CaseNotFoundError(
                f"BSI analysis file not found: {bsi_analysis_filename(case_id)}"
            ) from e

        try:
            return bsi_summaries(document)
        except ValueError as e:
            raise DocumentStoreError(f"Invalid BSI analysis file structure: {path}") from e

    def fetch_funding_transfer(self, case_id: str) -> dict[str, int]:
        """
        Get funding transfer deposit counts for a case.

        Args:
            case_id: Case identifier such as "Case101"

        Returns:
            Account number -> funding transfer count

        Raises:
            InvalidCaseIdError: If case_id has no case number
            CaseNotFoundError: If the case file is missing
            DocumentStoreError: If the file is malformed
        """
        filename = funding_transfer_filename(case_id)
        path = _join(self.funding_transfer_path, filename)
        try:
            document = self.read_json(path)
        except DocumentNotFoundError as e:
            raise CaseNotFoundError(f"File not found: {filename}") from e

        try:
            return funding_transfer_counts(document)
        except ValueError as e:
            raise DocumentStoreError(f"Invalid file structure: {path}") from e


class DataLakeDocumentStore(DocumentStore):
    """Document store backed by an Azure Data Lake Storage Gen2 file system."""

    def __init__(
        self,
        config: StorageConfig,
        client: DataLakeServiceClient | None = None,
        max_workers: int | None = None,
    ) -> None:
        """
        Initialize store from storage configuration.

        Args:
            config: Validated storage configuration
            client: Pre-built service client (built from config if omitted)
            max_workers: Concurrent file reads
        """
        super().__init__(
            directory_path=config.directory_path,
            mca_directory_path=config.mca_directory_path,
            funding_transfer_path=config.funding_transfer_path,
            max_workers=max_workers,
        )
        self.config = config
        if client is None:
            client = DataLakeServiceClient(
                account_url=config.account_url,
                credential=config.credential,
            )
        self._file_system = client.get_file_system_client(config.file_system)

    def _paths(self, path: str, recursive: bool) -> list[Any]:
        try:
            return list(self._file_system.get_paths(path=path or None, recursive=recursive))
        except AzureError as e:
            raise DocumentStoreError(
                f"Failed to list {path or '/'} in {self.config.file_system}: {e}"
            ) from e

    def list_files(self, path: str, suffix: str = ".json") -> list[str]:
        """List files under path in the file system, recursively."""
        return [
            item.name.lstrip("/")
            for item in self._paths(path, recursive=True)
            if not item.is_directory and item.name and item.name.endswith(suffix)
        ]

    def list_directories(self, path: str) -> list[str]:
        """List immediate subdirectories of path in the file system."""
        return [
            item.name
            for item in self._paths(path, recursive=False)
            if item.is_directory and item.name
        ]

    def read_bytes(self, path: str) -> bytes:
        """Download a file from the file system."""
        try:
            return self._file_system.get_file_client(path).download_file().readall()  # type: ignore[no-any-return]
        except ResourceNotFoundError as e:
            raise DocumentNotFoundError(f"File not found: {path}") from e
        except AzureError as e:
            raise DocumentStoreError(f"Failed to read {path}: {e}") from e


class LocalDocumentStore(DocumentStore):
    """Document store over a local directory laid out like the file system."""

    def __init__(
        self,
        root: Path,
        directory_path: str = "",
        mca_directory_path: str = DEFAULT_MCA_PATH,
        funding_transfer_path: str = DEFAULT_FUNDING_TRANSFER_PATH,
        max_workers: int | None = None,
    ) -> None:
        """Initialize store rooted at a local directory."""
        super().__init__(
            directory_path=directory_path,
            mca_directory_path=mca_directory_path,
            funding_transfer_path=funding_transfer_path,
            max_workers=max_workers,
        )
        self.root = root

    def list_files(self, path: str, suffix: str = ".json") -> list[str]:
        """List files under path in the local directory, recursively."""
        base = self.root / path
        if not base.is_dir():
            raise DocumentStoreError(f"Directory not found: {base}")
        return sorted(
            file.relative_to(self.root).as_posix()
            for file in base.rglob(f"*{suffix}")
            if file.is_file()
        )

    def list_directories(self, path: str) -> list[str]:
        """List immediate subdirectories of path in the local directory."""
        base = self.root / path
        if not base.is_dir():
            return []
        return sorted(
            child.relative_to(self.root).as_posix()
            for child in base.iterdir()
            if child.is_dir()
        )

    def read_bytes(self, path: str) -> bytes:
        """Read a file from the local directory."""
        file = self.root / path
        if not file.is_file():
            raise DocumentNotFoundError(f"File not found: {path}")
        try:
            return file.read_bytes()
        except OSError as e:
            raise DocumentStoreError(f"Failed to read {path}: {e}") from e
