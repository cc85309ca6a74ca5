"""
Plugin Installation Manifest.

This module provides parsing and validation of `manifest.json` files shipped
with a plugin source directory.

Key features:
- Plugin kinds and their on-disk directory names
- Fail-closed validation of identity, kind and version syntax
- Add-on parent framework requirement
- Dependency map kept verbatim (version ranges are informational only)
"""

import json
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from trellis.plugin.errors import PluginError

MANIFEST_FILENAME = "manifest.json"

PLUGIN_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")
# Numeric prefix only; pre-release or build suffixes are accepted
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+")

REQUIRED_FIELDS = ["id", "type", "name", "version"]


class ManifestError(PluginError):
    """Base exception for manifest-related errors."""

    pass


class ManifestNotFoundError(ManifestError):
    """Raised when a plugin source has no manifest.json."""

    pass


class ValidationError(ManifestError):
    """Raised when manifest validation fails."""

    pass


class PluginKind(Enum):
    """Plugin kind enumeration."""

    FRAMEWORK = "framework"
    ADD_ON = "add-on"
    EXTENSION = "extension"

    @property
    def dir_name(self) -> str:
        """Directory under the plugin root holding plugins of this kind."""
        return _KIND_DIRS[self]

    @property
    def has_workspace(self) -> bool:
        """Frameworks get repo/, projects/, working/ and archive/ sub-trees."""
        return self is PluginKind.FRAMEWORK

    @classmethod
    def parse(cls, value: Any) -> "PluginKind":
        """
        Convert a manifest or registry value into a PluginKind.

        Raises:
            ValidationError: If the value is not a known kind
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as e:
            valid = ", ".join(kind.value for kind in cls)
            raise ValidationError(
                f"Invalid plugin type '{value}'. Must be one of: {valid}"
            ) from e


_KIND_DIRS = {
    PluginKind.FRAMEWORK: "frameworks",
    PluginKind.ADD_ON: "add-ons",
    PluginKind.EXTENSION: "extensions",
}

KIND_DIRECTORIES = [kind.dir_name for kind in PluginKind]


@dataclass
class InstallManifest:
    """
    A plugin's installation manifest.

    Attributes:
        id: Plugin identifier (unique across the registry)
        kind: Plugin kind
        name: Human-readable name
        version: Version string with a numeric major.minor.patch prefix
        description: Plugin description
        author: Plugin author
        license: License identifier
        repository: Repository URL
        parent_framework: Framework an add-on extends
        dependencies: Plugin id -> version range (never evaluated)
        entry: Entry point name -> relative path
        keywords: Search keywords
        raw_data: The manifest document as read
    """

    id: str
    kind: PluginKind
    name: str
    version: str
    description: str = ""
    author: str | None = None
    license: str | None = None
    repository: str | None = None
    parent_framework: str | None = None
    dependencies: dict[str, str] = field(default_factory=dict)
    entry: dict[str, str] = field(default_factory=dict)
    keywords: list[str] = field(default_factory=list)
    raw_data: dict[str, Any] = field(default_factory=dict, repr=False)

    def with_overrides(
        self, kind: PluginKind | str | None = None, parent_framework: str | None = None
    ) -> "InstallManifest":
        """
        Return a copy with the kind and/or parent framework replaced.

        The add-on parent rule is re-checked on the result.

        Raises:
            ValidationError: If the override yields an invalid combination
        """
        updated = self
        if kind is not None:
            updated = replace(updated, kind=PluginKind.parse(kind))
        if parent_framework:
            _check_plugin_id(parent_framework, "parentFramework")
            updated = replace(updated, parent_framework=parent_framework)
        _check_parent_rule(updated.kind, updated.parent_framework)
        return updated


def parse_manifest(manifest_path: Path) -> InstallManifest:
    """
    Parse a manifest.json file.

    Args:
        manifest_path: Path to manifest.json

    Returns:
        InstallManifest object

    Raises:
        ManifestNotFoundError: If the file does not exist
        ManifestError: If the file cannot be read or is not valid JSON
        ValidationError: If the manifest breaks a validation rule
    """
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestNotFoundError(
            f"Manifest not found at {manifest_path}. "
            f"Ensure the plugin has a valid {MANIFEST_FILENAME}"
        ) from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Failed to parse manifest JSON: {e}") from e
    except OSError as e:
        raise ManifestError(f"Failed to read manifest file: {e}") from e

    validate_manifest_structure(data)

    return InstallManifest(
        id=data["id"],
        kind=PluginKind.parse(data["type"]),
        name=data["name"],
        version=data["version"],
        description=data.get("description", ""),
        author=data.get("author"),
        license=data.get("license"),
        repository=data.get("repository"),
        parent_framework=data.get("parentFramework") or None,
        dependencies=dict(data.get("dependencies") or {}),
        entry=dict(data.get("entry") or {}),
        keywords=list(data.get("keywords") or []),
        raw_data=data,
    )


def load_manifest(source: Path) -> InstallManifest:
    """Parse `<source>/manifest.json`."""
    return parse_manifest(Path(source) / MANIFEST_FILENAME)


def validate_manifest_structure(data: Any) -> None:
    """
    Validate manifest structure and required fields.

    Args:
        data: Parsed manifest document

    Raises:
        ValidationError: If the manifest structure is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Manifest must be a JSON object")

    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise ValidationError(f"Manifest missing required fields: {', '.join(missing)}")

    _check_plugin_id(data["id"], "plugin ID")

    version = data["version"]
    if not isinstance(version, str) or not VERSION_PATTERN.match(version):
        raise ValidationError(
            f"Invalid version '{version}'. Use semver format (e.g., 1.0.0)."
        )

    kind = PluginKind.parse(data["type"])

    if not isinstance(data["name"], str) or not data["name"].strip():
        raise ValidationError("'name' field must be a non-empty string")

    for key in ("description", "author", "license", "repository"):
        if key in data and data[key] is not None and not isinstance(data[key], str):
            raise ValidationError(f"'{key}' field must be a string")

    parent = data.get("parentFramework")
    if parent:
        _check_plugin_id(parent, "parentFramework")
    _check_parent_rule(kind, parent)

    dependencies = data.get("dependencies")
    if dependencies is not None:
        if not isinstance(dependencies, dict):
            raise ValidationError("'dependencies' field must be an object")
        for dep_id, dep_range in dependencies.items():
            _check_plugin_id(dep_id, "dependency")
            if not isinstance(dep_range, str):
                raise ValidationError(
                    f"Dependency version range must be a string: {dep_id}={dep_range!r}"
                )

    entry = data.get("entry")
    if entry is not None:
        if not isinstance(entry, dict) or not all(
            isinstance(v, str) for v in entry.values()
        ):
            raise ValidationError("'entry' field must map names to path strings")

    keywords = data.get("keywords")
    if keywords is not None:
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise ValidationError("'keywords' field must be a list of strings")


def _check_plugin_id(value: Any, label: str) -> None:
    if not isinstance(value, str) or not PLUGIN_ID_PATTERN.match(value):
        raise ValidationError(
            f"Invalid {label} '{value}'. Use lowercase letters, numbers, and hyphens only."
        )


def _check_parent_rule(kind: PluginKind, parent: str | None) -> None:
    if kind is PluginKind.ADD_ON and not parent:
        raise ValidationError(
            f"Add-on plugins require a 'parentFramework' field in {MANIFEST_FILENAME}"
        )
