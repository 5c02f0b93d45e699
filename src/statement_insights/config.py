"""Configuration management for statement-insights."""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Default config filename
CONFIG_FILENAME = "config.json"

DEFAULT_FILE_SYSTEM = "fs-general"
DEFAULT_MCA_PATH = "gold/mca"
DEFAULT_FUNDING_TRANSFER_PATH = "gold/funding_deposit"

# Environment variable -> storage config key
ENV_OVERRIDES = {
    "AZURE_STORAGE_ACCOUNT_NAME": "account_name",
    "AZURE_STORAGE_ACCOUNT_KEY": "account_key",
    "AZURE_STORAGE_SAS_TOKEN": "sas_token",
    "AZURE_STORAGE_FILE_SYSTEM_NAME": "file_system",
    "AZURE_STORAGE_DIRECTORY_PATH": "directory_path",
    "AZURE_STORAGE_DIRECTORY_PATH_MCA": "mca_directory_path",
    "FUNDING_TRANSFER_DEPOSIT_PATH": "funding_transfer_path",
}


class ConfigError(ValueError):
    """Raised when storage configuration is missing or inconsistent."""


@dataclass(frozen=True)
class StorageConfig:
    """Connection settings for the statement document store."""

    account_name: str
    account_key: str | None = None
    sas_token: str | None = None
    file_system: str = DEFAULT_FILE_SYSTEM
    directory_path: str = ""
    mca_directory_path: str = DEFAULT_MCA_PATH
    funding_transfer_path: str = DEFAULT_FUNDING_TRANSFER_PATH

    def __post_init__(self) -> None:
        """Validate credentials."""
        if not self.account_name:
            raise ConfigError("AZURE_STORAGE_ACCOUNT_NAME is required")

        if not self.account_key and not self.sas_token:
            raise ConfigError(
                "Either AZURE_STORAGE_ACCOUNT_KEY or AZURE_STORAGE_SAS_TOKEN is required"
            )

        if self.account_key and self.sas_token:
            raise ConfigError(
                "Set only one of AZURE_STORAGE_ACCOUNT_KEY or AZURE_STORAGE_SAS_TOKEN"
            )

    @property
    def account_url(self) -> str:
        """Data Lake endpoint for the storage account."""
        return f"https://{self.account_name}.dfs.core.windows.net"

    @property
    def credential(self) -> str:
        """SAS token without leading '?', or the shared account key."""
        if self.sas_token:
            return self.sas_token.lstrip("?")
        return self.account_key or ""


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "statement-insights"


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. config.json in current directory
    2. XDG config: ~/.config/statement-insights/config.json
    """
    config_paths = [
        Path(CONFIG_FILENAME),
        get_config_dir() / CONFIG_FILENAME,
    ]

    for path in config_paths:
        if path.exists():
            return path

    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(config_path) as f:
        return json.load(f)  # type: ignore[no-any-return]


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to config.json file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        return load_json_config(config_file)

    return None


def get_storage_settings(
    config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Merge the config file's storage section with environment overrides.

    Args:
        config: Loaded JSON config
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Dictionary of StorageConfig keyword arguments
    """
    if environ is None:
        environ = os.environ

    settings: dict[str, Any] = {}
    if config:
        storage = config.get("storage", {})
        if not isinstance(storage, Mapping):
            raise ConfigError("'storage' section must be an object")
        settings.update(storage)

    for env_var, key in ENV_OVERRIDES.items():
        if value := environ.get(env_var):
            settings[key] = value

    return settings


def get_storage_config(
    config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> StorageConfig:
    """Build a validated StorageConfig.

    Raises:
        ConfigError: If the account name or credentials are missing,
            both credentials are set, or unknown keys are present
    """
    settings = get_storage_settings(config, environ)

    unknown = set(settings) - set(ENV_OVERRIDES.values())
    if unknown:
        raise ConfigError(f"Unknown storage settings: {', '.join(sorted(unknown))}")

    return StorageConfig(
        account_name=settings.get("account_name", ""),
        account_key=settings.get("account_key"),
        sas_token=settings.get("sas_token"),
        file_system=settings.get("file_system") or DEFAULT_FILE_SYSTEM,
        directory_path=settings.get("directory_path") or "",
        mca_directory_path=settings.get("mca_directory_path") or DEFAULT_MCA_PATH,
        funding_transfer_path=(
            settings.get("funding_transfer_path") or DEFAULT_FUNDING_TRANSFER_PATH
        ),
    )
