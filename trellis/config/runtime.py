"""
Resolved Runtime Settings.

This module provides the `Settings` object handed to every lifecycle component.

Key features:
- Attribute access to validated settings values
- Path resolution of relative settings against the plugin root
- Read-only after construction
"""

from pathlib import Path
from typing import Any

from trellis.config.schema import ConfigField, validate_settings


class SettingsError(Exception):
    """Raised on access to an undeclared setting or an attempted write."""

    pass


class Settings:
    """
    Validated settings bound to a plugin root directory.

    Example:
        settings = Settings(Path("~/.local/share/trellis"), schema, values)
        settings.health_stale_hours   # 24
        settings.registry_path        # <root>/registry.json
    """

    def __init__(
        self,
        root: Path,
        schema: dict[str, ConfigField],
        values: dict[str, Any],
        source: Path | None = None,
    ):
        """
        Initialize Settings.

        Args:
            root: Plugin root directory
            schema: Schema the values were declared with
            values: Complete settings table
            source: Settings file the values came from (None for defaults)

        Raises:
            ValidationError: If values do not satisfy the schema
        """
        validate_settings(values, schema)
        object.__setattr__(self, "_root", Path(root).expanduser())
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(self, "_values", dict(values))
        object.__setattr__(self, "_source", source)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)

        if name not in self._schema:
            raise AttributeError(f"Unknown setting '{name}'")

        return self._values[name]

    def __setattr__(self, name: str, value: Any) -> None:
        raise SettingsError(
            f"Settings are read-only; edit {self._source or 'the settings file'} instead"
        )

    @property
    def root(self) -> Path:
        return self._root

    @property
    def source(self) -> Path | None:
        return self._source

    @property
    def registry_path(self) -> Path:
        return self._root / self._values["registry_file"]

    @property
    def backup_path(self) -> Path:
        return self._root / self._values["backup_dir"]

    @property
    def archive_path(self) -> Path:
        return self._root / self._values["archive_dir"]

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"Settings({self._root}, {self._values})"
