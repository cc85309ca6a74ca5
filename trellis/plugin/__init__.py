"""
Trellis Plugin System - Plugin lifecycle management.

This module handles:
- Installation manifest parsing and validation
- Registry persistence
- Installation and uninstallation with rollback
- Registry consistency validation
- Health and status reporting
"""

from trellis.plugin.errors import (
    AlreadyInstalledError,
    ConflictError,
    DependencyError,
    DependentsExistError,
    FilesystemError,
    NotInstalledError,
    PluginError,
    RegistryError,
    RegistryNotFoundError,
)
from trellis.plugin.installer import InstallOptions, InstallResult, PluginInstaller
from trellis.plugin.manifest import InstallManifest, ManifestError, PluginKind, ValidationError
from trellis.plugin.manager import PluginManager
from trellis.plugin.registry import HealthStatus, RegistryDocument, RegistryEntry, RegistryStore
from trellis.plugin.status import PluginStatus
from trellis.plugin.uninstaller import PluginUninstaller, UninstallOptions, UninstallResult
from trellis.plugin.validator import RegistryValidator, ValidationOptions

__all__ = [
    "AlreadyInstalledError",
    "ConflictError",
    "DependencyError",
    "DependentsExistError",
    "FilesystemError",
    "HealthStatus",
    "InstallManifest",
    "InstallOptions",
    "InstallResult",
    "ManifestError",
    "NotInstalledError",
    "PluginError",
    "PluginInstaller",
    "PluginKind",
    "PluginManager",
    "PluginStatus",
    "PluginUninstaller",
    "RegistryDocument",
    "RegistryEntry",
    "RegistryError",
    "RegistryNotFoundError",
    "RegistryStore",
    "RegistryValidator",
    "UninstallOptions",
    "UninstallResult",
    "ValidationError",
    "ValidationOptions",
]
