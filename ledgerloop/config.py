"""Configuration file management for ledgerloop."""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomli_w

from ledgerloop.store.definitions import DEFAULT_LEASE_SECONDS, DEFAULT_LEGACY_KEY, DEFAULT_STORAGE_KEY
from ledgerloop.store.schema import get_db_path


@dataclass(frozen=True)
class Settings:
    """Effective settings after defaults are applied."""

    db_path: Path
    storage_key: str = DEFAULT_STORAGE_KEY
    legacy_key: str = DEFAULT_LEGACY_KEY
    lease_seconds: int = DEFAULT_LEASE_SECONDS
    log_level: str = "WARNING"


def get_xdg_config_home() -> Path:
    """Get XDG config directory, with fallback to ~/.config."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


def get_config_path() -> Path:
    """Get the config file path (XDG compliant).

    Returns:
        Path to the config file.
    """
    return get_xdg_config_home() / "ledgerloop" / "config.toml"


def create_default_config(config_path: Path | None = None) -> None:
    """Create default config file with secure permissions.

    Args:
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    default_config: dict[str, Any] = {
        "storage_key": DEFAULT_STORAGE_KEY,
        "legacy_key": DEFAULT_LEGACY_KEY,
        "lease_seconds": DEFAULT_LEASE_SECONDS,
        "log_level": "WARNING",
    }

    save_config(default_config, config_path)


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
    """
    if config_path is None:
        config_path = get_config_path()

    with open(config_path, "rb") as f:
        return tomllib.load(f)


def save_config(config: dict[str, Any], config_path: Path | None = None) -> None:
    """Save configuration to TOML file.

    Args:
        config: Configuration dictionary.
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    os.chmod(config_path, 0o600)


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings, falling back to defaults for anything not configured.

    A missing config file is not an error; every key has a default.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Effective settings.

    Raises:
        tomllib.TOMLDecodeError: If the config file is not valid TOML.
        ValueError: If a value has the wrong type.
    """
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        config = {}

    db_path = config.get("db_path")
    lease_seconds = config.get("lease_seconds", DEFAULT_LEASE_SECONDS)
    if not isinstance(lease_seconds, int) or lease_seconds <= 0:
        raise ValueError(f"lease_seconds must be a positive integer, got {lease_seconds!r}")

    return Settings(
        db_path=Path(db_path).expanduser() if db_path else get_db_path(),
        storage_key=str(config.get("storage_key", DEFAULT_STORAGE_KEY)),
        legacy_key=str(config.get("legacy_key", DEFAULT_LEGACY_KEY)),
        lease_seconds=lease_seconds,
        log_level=str(config.get("log_level", "WARNING")).upper(),
    )
