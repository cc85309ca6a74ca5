"""
Plugin lifecycle exceptions.

Validation errors are raised before any mutation; filesystem errors are raised
mid-operation and trigger rollback; conflict errors are recoverable with force.
"""


class PluginError(Exception):
    """Base exception for plugin lifecycle errors."""

    pass


class ConflictError(PluginError):
    """Raised when an operation collides with the current registry state."""

    pass


class AlreadyInstalledError(ConflictError):
    """Raised when installing a plugin id that is already registered."""

    def __init__(self, plugin_id: str):
        self.plugin_id = plugin_id
        super().__init__(
            f"Plugin '{plugin_id}' is already installed. Use --force to reinstall."
        )


class DependentsExistError(ConflictError):
    """Raised when uninstalling a plugin that other plugins depend on."""

    def __init__(self, plugin_id: str, dependents: list):
        self.plugin_id = plugin_id
        self.dependents = dependents
        names = ", ".join(f"{d.id} ({d.kind.value})" for d in dependents)
        super().__init__(
            f"Cannot uninstall '{plugin_id}' - the following plugins depend on it: {names}. "
            f"Uninstall them first or use --force to skip this check."
        )


class DependencyError(PluginError):
    """Raised when required plugins are not installed.

    Attributes:
        missing: Every missing plugin id, in manifest order
        messages: One remediation message per missing id
    """

    def __init__(self, missing: list[str], messages: list[str]):
        self.missing = missing
        self.messages = messages
        super().__init__("; ".join(messages))


class NotInstalledError(PluginError):
    """Raised when a plugin id is not present in the registry."""

    def __init__(self, plugin_id: str):
        self.plugin_id = plugin_id
        super().__init__(f"Plugin '{plugin_id}' is not installed")


class FilesystemError(PluginError):
    """Raised when creating, copying, moving or removing files fails."""

    pass


class RegistryError(PluginError):
    """Raised when the registry file cannot be read, parsed or written."""

    pass


class RegistryNotFoundError(RegistryError):
    """Raised when the registry file does not exist."""

    pass
