"""
Plugin Registry Store.

This module persists the list of installed plugins as a single JSON document.

Key features:
- Typed registry entries with optional cached health snapshots
- Whole-document load/save (no partial updates)
- Exact-text snapshot and restore for rollback
- Timestamped file backups

The store takes no locks: concurrent writers are last-writer-wins.
"""

import json
import logging
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from trellis.plugin.errors import RegistryError, RegistryNotFoundError
from trellis.plugin.manifest import InstallManifest, PluginKind, ValidationError

logger = logging.getLogger(__name__)

REGISTRY_SCHEMA_VERSION = "1.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """
    Parse a registry timestamp.

    Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not ISO-8601
    """
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class HealthStatus(Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class HealthSnapshot:
    """Cached result of a health evaluation."""

    status: HealthStatus
    last_check: str
    issues: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HealthSnapshot":
        return cls(
            status=HealthStatus(data.get("status", "healthy")),
            last_check=data.get("lastCheck", ""),
            issues=list(data.get("issues") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value, "lastCheck": self.last_check}
        if self.issues:
            data["issues"] = list(self.issues)
        return data


@dataclass
class RegistryEntry:
    """
    One installed plugin.

    Attributes:
        id: Plugin identifier
        kind: Plugin kind
        name: Human-readable name
        version: Installed version
        path: Install path relative to the plugin root
        installed_at: Install timestamp
        parent_framework: Framework this plugin extends
        projects: Project identifiers owned by a framework
        health: Last cached health snapshot
    """

    id: str
    kind: PluginKind
    name: str
    version: str
    path: str
    installed_at: str
    parent_framework: str | None = None
    projects: list[str] | None = None
    health: HealthSnapshot | None = None

    @classmethod
    def from_manifest(
        cls, manifest: InstallManifest, relative_path: str, now: str
    ) -> "RegistryEntry":
        """Create the entry recorded for a fresh install (optimistically healthy)."""
        return cls(
            id=manifest.id,
            kind=manifest.kind,
            name=manifest.name,
            version=manifest.version,
            path=relative_path,
            installed_at=now,
            parent_framework=manifest.parent_framework,
            health=HealthSnapshot(status=HealthStatus.HEALTHY, last_check=now),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryEntry":
        health = data.get("health")
        return cls(
            id=data["id"],
            kind=PluginKind.parse(data["type"]),
            name=data.get("name", data["id"]),
            version=data.get("version", ""),
            path=data["path"],
            installed_at=data.get("installedAt", ""),
            parent_framework=data.get("parentFramework") or None,
            projects=list(data["projects"]) if data.get("projects") is not None else None,
            health=HealthSnapshot.from_dict(health) if isinstance(health, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "version": self.version,
            "path": self.path,
            "installedAt": self.installed_at,
        }
        if self.parent_framework:
            data["parentFramework"] = self.parent_framework
        if self.projects is not None:
            data["projects"] = list(self.projects)
        if self.health is not None:
            data["health"] = self.health.to_dict()
        return data


@dataclass
class RegistryDocument:
    """The whole registry: schema version, modification time and entries."""

    version: str = REGISTRY_SCHEMA_VERSION
    last_modified: str = ""
    plugins: list[RegistryEntry] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "RegistryDocument":
        return cls(last_modified=format_timestamp(utc_now()))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryDocument":
        return cls(
            version=data.get("version", REGISTRY_SCHEMA_VERSION),
            last_modified=data.get("lastModified", ""),
            plugins=[RegistryEntry.from_dict(p) for p in data.get("plugins") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lastModified": self.last_modified,
            "plugins": [p.to_dict() for p in self.plugins],
        }

    def get(self, plugin_id: str) -> RegistryEntry | None:
        for entry in self.plugins:
            if entry.id == plugin_id:
                return entry
        return None

    def contains(self, plugin_id: str) -> bool:
        return self.get(plugin_id) is not None

    def remove(self, plugin_id: str) -> bool:
        """Drop every entry with this id. Returns True if any was dropped."""
        before = len(self.plugins)
        self.plugins = [p for p in self.plugins if p.id != plugin_id]
        return len(self.plugins) != before

    def dependents_of(self, plugin_id: str) -> list[RegistryEntry]:
        """Entries declaring plugin_id as their parent framework."""
        return [p for p in self.plugins if p.parent_framework == plugin_id]

    def framework_ids(self) -> set[str]:
        return {p.id for p in self.plugins if p.kind is PluginKind.FRAMEWORK}


class RegistryStore:
    """
    Reads and writes the registry JSON file.

    The store is not transactional; callers take a snapshot before a
    multi-step mutation and restore it on failure.
    """

    def __init__(self, registry_path: Path):
        self.registry_path = Path(registry_path)

    def exists(self) -> bool:
        return self.registry_path.is_file()

    def load(self) -> RegistryDocument:
        """
        Load the registry document.

        Raises:
            RegistryNotFoundError: If the registry file does not exist
            RegistryError: If the file cannot be read or parsed
        """
        try:
            text = self.registry_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise RegistryNotFoundError(f"Registry not found: {self.registry_path}") from e
        except OSError as e:
            raise RegistryError(f"Failed to read registry {self.registry_path}: {e}") from e

        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise RegistryError("Registry document must be a JSON object")
            return RegistryDocument.from_dict(data)
        except json.JSONDecodeError as e:
            raise RegistryError(f"Failed to parse registry JSON: {e}") from e
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise RegistryError(f"Malformed registry entry: {e}") from e

    def load_or_empty(self) -> RegistryDocument:
        """Load the registry, or return an empty document if none exists yet."""
        try:
            return self.load()
        except RegistryNotFoundError:
            return RegistryDocument.empty()

    def save(self, document: RegistryDocument) -> None:
        """
        Rewrite the whole registry file, bumping lastModified.

        Raises:
            RegistryError: If the file cannot be written
        """
        document.last_modified = format_timestamp(utc_now())
        text = json.dumps(document.to_dict(), indent=2) + "\n"
        try:
            self.registry_path.parent.mkdir(parents=True, exist_ok=True)
            self.registry_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise RegistryError(f"Failed to write registry {self.registry_path}: {e}") from e
        logger.debug("Saved registry with %d plugin(s)", len(document.plugins))

    def snapshot(self) -> bytes | None:
        """Exact current file bytes, or None when there is no registry file."""
        try:
            return self.registry_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise RegistryError(f"Failed to snapshot registry: {e}") from e

    def restore(self, snapshot: bytes | None) -> None:
        """Write a snapshot back verbatim; a None snapshot removes the file."""
        if snapshot is None:
            self.registry_path.unlink(missing_ok=True)
        else:
            try:
                self.registry_path.write_bytes(snapshot)
            except OSError as e:
                raise RegistryError(f"Failed to restore registry: {e}") from e
        logger.debug("Restored registry snapshot")

    def backup(self, backup_dir: Path) -> Path:
        """
        Copy the registry file to a timestamped file in backup_dir.

        Returns:
            Path of the backup copy

        Raises:
            RegistryNotFoundError: If there is no registry file to back up
            RegistryError: If the copy fails
        """
        if not self.exists():
            raise RegistryNotFoundError(f"Registry not found: {self.registry_path}")

        backup_path = backup_dir / f"registry-{time.time_ns() // 1_000_000}.json"
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.registry_path, backup_path)
        except OSError as e:
            raise RegistryError(f"Failed to back up registry: {e}") from e
        return backup_path

    def restore_backup(self, backup_path: Path) -> None:
        shutil.copyfile(backup_path, self.registry_path)
        logger.debug("Restored registry from %s", backup_path)
