"""
Trellis Configuration - TOML-based settings for the plugin manager.

This module provides:
- The declared settings schema
- Root directory resolution (argument, TRELLIS_HOME, default)
- Loading and validating `trellis.toml`
- Generating a commented default settings file

Example usage:
    from trellis.config import load_settings

    settings = load_settings()
    print(settings.registry_path)
"""

import os
from pathlib import Path

from trellis.config.runtime import Settings, SettingsError
from trellis.config.schema import (
    ConfigField,
    ValidationError,
    default_settings,
)
from trellis.config.toml_handler import TOMLError, read_toml, render_settings_toml, write_toml

SETTINGS_TABLE = "trellis"
SETTINGS_FILE = "trellis.toml"
ROOT_ENV_VAR = "TRELLIS_HOME"
DEFAULT_ROOT = Path("~/.local/share/trellis")

SETTINGS_SCHEMA: dict[str, ConfigField] = {
    "registry_file": ConfigField(
        str, "registry.json", "Registry file, relative to the plugin root", min=1
    ),
    "backup_dir": ConfigField(
        str, "backups", "Registry backups and rollback stashes, relative to the plugin root", min=1
    ),
    "archive_dir": ConfigField(
        str,
        "archive/uninstalled",
        "Where projects are archived on uninstall with --keep-projects",
        min=1,
    ),
    "health_stale_hours": ConfigField(
        int, 24, "Age after which a cached health snapshot is reported as stale", min=1
    ),
    "log_level": ConfigField(
        str,
        "WARNING",
        "Log level used by the tpm command line",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    ),
}


class ConfigError(Exception):
    """Raised when the settings file cannot be loaded or is invalid."""

    pass


def resolve_root(root: str | Path | None = None) -> Path:
    """
    Resolve the plugin root directory.

    Args:
        root: Explicit root; falls back to $TRELLIS_HOME, then the default

    Returns:
        Expanded root path (not required to exist)
    """
    if root is None:
        root = os.environ.get(ROOT_ENV_VAR) or DEFAULT_ROOT
    return Path(root).expanduser()


def load_settings(
    root: str | Path | None = None, config_file: str | Path | None = None
) -> Settings:
    """
    Load settings for a plugin root.

    A missing settings file, or a file without a [trellis] table, yields the
    defaults. Keys present in the file override the defaults.

    Args:
        root: Plugin root directory (see resolve_root)
        config_file: Settings file; defaults to <root>/trellis.toml

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    root_path = resolve_root(root)
    path = Path(config_file).expanduser() if config_file else root_path / SETTINGS_FILE

    values = default_settings(SETTINGS_SCHEMA)
    source = None

    if path.exists():
        try:
            data = read_toml(path)
        except TOMLError as e:
            raise ConfigError(str(e)) from e

        table = data.get(SETTINGS_TABLE, {})
        if not isinstance(table, dict):
            raise ConfigError(f"[{SETTINGS_TABLE}] in {path} must be a table")
        values.update(table)
        source = path

    try:
        return Settings(root_path, SETTINGS_SCHEMA, values, source=source)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e


def write_default_config(path: Path, overwrite: bool = False) -> Path:
    """
    Write a commented settings file holding every default.

    Args:
        path: Destination file
        overwrite: Replace an existing file

    Returns:
        The written path

    Raises:
        ConfigError: If the file exists and overwrite is False, or writing fails
    """
    if path.exists() and not overwrite:
        raise ConfigError(f"Settings file already exists: {path}")

    text = render_settings_toml(SETTINGS_TABLE, SETTINGS_SCHEMA, default_settings(SETTINGS_SCHEMA))
    try:
        write_toml(path, text)
    except TOMLError as e:
        raise ConfigError(str(e)) from e
    return path


__all__ = [
    "SETTINGS_SCHEMA",
    "SETTINGS_FILE",
    "ConfigError",
    "Settings",
    "SettingsError",
    "load_settings",
    "resolve_root",
    "write_default_config",
]
