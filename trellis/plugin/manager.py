"""
Plugin Manager.

This module provides one entry point over the plugin lifecycle components.

Key features:
- Install and uninstall with rollback
- Uninstall ordering for a plugin and its dependents
- Registry validation
- Status reporting and health recording
"""

from pathlib import Path

from trellis.config import Settings, load_settings
from trellis.plugin.installer import InstallOptions, InstallResult, PluginInstaller
from trellis.plugin.registry import RegistryEntry
from trellis.plugin.status import PluginStatus
from trellis.plugin.uninstaller import PluginUninstaller, UninstallOptions, UninstallResult
from trellis.plugin.validator import RegistryValidator, ValidationOptions


class PluginManager:
    """
    Plugin lifecycle manager.

    Components are created once per manager and share its settings. Every
    install or uninstall call runs in its own transaction.

    Example:
        manager = PluginManager.for_root("/tmp/plugins")
        manager.install("./sdlc-complete")
        manager.install("./gdpr-addon")
        manager.uninstall_order("sdlc-complete")   # ["gdpr-addon", "sdlc-complete"]
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.installer = PluginInstaller(settings)
        self.uninstaller = PluginUninstaller(settings)
        self.status = PluginStatus(settings)

    @classmethod
    def for_root(
        cls, root: str | Path | None = None, config_file: str | Path | None = None
    ) -> "PluginManager":
        """Build a manager from the settings of a plugin root."""
        return cls(load_settings(root, config_file))

    def install(self, source: str | Path, options: InstallOptions | None = None) -> InstallResult:
        return self.installer.install(source, options)

    def uninstall(
        self, plugin_id: str, options: UninstallOptions | None = None
    ) -> UninstallResult:
        return self.uninstaller.uninstall(plugin_id, options)

    def uninstall_order(self, plugin_id: str) -> list[str]:
        return self.uninstaller.get_uninstall_order(plugin_id)

    def validator(self, options: ValidationOptions | None = None) -> RegistryValidator:
        """Create a validator; options default to the configured staleness threshold."""
        return RegistryValidator(self.settings, options)

    def validate(self, options: ValidationOptions | None = None):
        return self.validator(options).validate()

    def list_installed(self) -> list[RegistryEntry]:
        return self.installer.list_installed()

    def get_plugin(self, plugin_id: str) -> RegistryEntry | None:
        return self.installer.get_plugin_info(plugin_id)
