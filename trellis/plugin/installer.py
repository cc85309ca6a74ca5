"""
Plugin Installer.

This module installs plugins from a local source directory into the plugin root.

Key features:
- Manifest validation before any mutation
- Idempotency check with forced reinstall
- Presence-only dependency checking (parent framework and declared dependencies)
- Kind-specific directory layout
- Registry update with exact-text rollback
- Dry-run previews
- Atomic installation: any failure rolls back every completed step
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from trellis.config import Settings
from trellis.plugin import fs_ops
from trellis.plugin.errors import (
    AlreadyInstalledError,
    ConflictError,
    DependencyError,
    FilesystemError,
)
from trellis.plugin.manifest import (
    InstallManifest,
    ManifestError,
    PluginKind,
    load_manifest,
)
from trellis.plugin.registry import (
    RegistryDocument,
    RegistryEntry,
    RegistryStore,
    format_timestamp,
    utc_now,
)
from trellis.plugin.transaction import ActionKind, ActionRecord, Transaction

logger = logging.getLogger(__name__)

WORKSPACE_DIRS = ["repo", "projects", "working", "archive"]


@dataclass
class InstallOptions:
    """
    Options for a single install run.

    Attributes:
        kind: Override the manifest's plugin kind
        parent_framework: Override the manifest's parent framework
        dry_run: Record the planned actions without touching disk or registry
        force: Reinstall a plugin that is already registered
        target_dir: Install under this directory instead of the plugin root
        skip_dependency_check: Do not require parent/dependencies to be installed
    """

    kind: PluginKind | str | None = None
    parent_framework: str | None = None
    dry_run: bool = False
    force: bool = False
    target_dir: Path | None = None
    skip_dependency_check: bool = False


@dataclass
class InstallResult:
    """Outcome of an install run."""

    success: bool = False
    plugin_id: str = ""
    version: str = ""
    install_path: Path | None = None
    actions: list[ActionRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Exception | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "pluginId": self.plugin_id,
            "version": self.version,
            "installPath": str(self.install_path) if self.install_path else "",
            "actions": [a.to_dict() for a in self.actions],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class ManifestCheck:
    """Outcome of validating a plugin source without installing it."""

    valid: bool
    manifest: InstallManifest | None = None
    errors: list[str] = field(default_factory=list)


def get_install_path(kind: PluginKind, plugin_id: str, target_dir: Path) -> Path:
    """`<target_dir>/<kind dir>/<plugin_id>`."""
    return Path(target_dir) / kind.dir_name / plugin_id


def get_content_root(kind: PluginKind, install_path: Path) -> Path:
    """Where a plugin's files live: repo/ for frameworks, the install path otherwise."""
    return install_path / "repo" if kind.has_workspace else install_path


class PluginInstaller:
    """
    Installs plugins into a plugin root.

    Example:
        installer = PluginInstaller(load_settings("~/.local/share/trellis"))
        result = installer.install(Path("./sdlc-complete"))
        preview = installer.install(Path("./gdpr-addon"), InstallOptions(dry_run=True))
    """

    def __init__(self, settings: Settings):
        """
        Initialize PluginInstaller.

        Args:
            settings: Resolved settings (root, registry and backup locations)
        """
        self.settings = settings
        self.root = settings.root
        self.store = RegistryStore(settings.registry_path)

    def install(self, source: str | Path, options: InstallOptions | None = None) -> InstallResult:
        """
        Install a plugin from a source directory.

        Never raises for lifecycle failures; they are reported in the result.

        Args:
            source: Directory containing manifest.json and the plugin files
            options: Install options

        Returns:
            InstallResult with the action trail, errors and warnings
        """
        options = options or InstallOptions()
        source = Path(source).expanduser()
        txn = Transaction(dry_run=options.dry_run)
        result = InstallResult(actions=txn.actions)

        try:
            manifest = load_manifest(source).with_overrides(
                kind=options.kind, parent_framework=options.parent_framework
            )
            result.plugin_id = manifest.id
            result.version = manifest.version
            txn.record(
                ActionKind.VALIDATE,
                f"Validated manifest for {manifest.name} v{manifest.version}",
            )

            document = self.store.load_or_empty()
            registered = document.contains(manifest.id)
            if registered:
                if not options.force:
                    raise AlreadyInstalledError(manifest.id)
                result.warnings.append(f"Reinstalling existing plugin '{manifest.id}'")

            if options.skip_dependency_check:
                result.warnings.append("Dependency check skipped")
            else:
                self._check_dependencies(manifest, document)
                txn.record(ActionKind.CHECK_DEPS, "All dependencies are installed")

            target_dir = Path(options.target_dir).expanduser() if options.target_dir else self.root
            install_path = get_install_path(manifest.kind, manifest.id, target_dir)
            content_root = get_content_root(manifest.kind, install_path)
            result.install_path = install_path
            self._check_source_outside_target(source, install_path)

            if options.dry_run:
                self._plan(manifest, source, install_path, content_root, txn)
            else:
                if install_path.exists() and not registered:
                    result.warnings.append(
                        f"Replacing unregistered directory {self._relative(install_path)}"
                    )
                previous = document.get(manifest.id)
                if previous and previous.path != self._relative(install_path):
                    if (self.root / previous.path).exists():
                        result.warnings.append(
                            f"Previous installation left in place at {previous.path}; "
                            f"it is no longer registered"
                        )
                self._stash_existing(manifest, content_root, txn)
                self._create_directory_structure(manifest.kind, install_path, txn)
                self._copy_plugin_files(source, content_root, txn)
                self._update_registry(manifest, install_path, txn)

            result.warnings.extend(txn.commit())
            result.success = True
            if not options.dry_run:
                logger.info("Installed %s v%s at %s", manifest.id, manifest.version, install_path)

        except Exception as e:
            result.error = e
            if isinstance(e, DependencyError):
                result.errors.extend(e.messages)
            elif isinstance(e, (ManifestError, ConflictError)):
                result.errors.append(str(e))
            else:
                result.errors.append(f"Installation failed: {e}")
            logger.info("Install of %s failed: %s", result.plugin_id or source, e)

            if txn.pending_undo:
                txn.record(ActionKind.ROLLBACK, "Rolling back changes due to error")
                failed = txn.rollback()
                if failed:
                    result.warnings.append(
                        f"Rollback incomplete: {failed} step(s) failed, leftover files may remain"
                    )

        return result

    def _check_dependencies(self, manifest: InstallManifest, document: RegistryDocument) -> None:
        """
        Require the parent framework and every declared dependency to be registered.

        Version ranges are only quoted in the messages.

        Raises:
            DependencyError: Listing every missing plugin
        """
        missing: list[str] = []
        messages: list[str] = []

        parent = manifest.parent_framework
        if manifest.kind is PluginKind.ADD_ON and parent and not document.contains(parent):
            missing.append(parent)
            messages.append(
                f"Parent framework '{parent}' is not installed. "
                f"Install it first: tpm -S <path-to-{parent}>"
            )

        for dep_id, dep_range in manifest.dependencies.items():
            if dep_id in missing or document.contains(dep_id):
                continue
            missing.append(dep_id)
            messages.append(
                f"Required dependency '{dep_id}' ({dep_range}) is not installed. "
                f"Install it first: tpm -S <path-to-{dep_id}>"
            )

        if missing:
            raise DependencyError(missing, messages)

    def _check_source_outside_target(self, source: Path, install_path: Path) -> None:
        resolved_source = source.resolve()
        resolved_target = install_path.resolve()
        if resolved_target == resolved_source or resolved_target.is_relative_to(resolved_source):
            raise FilesystemError(
                f"Cannot install {source} into a directory inside itself: {install_path}"
            )

    def _plan(
        self,
        manifest: InstallManifest,
        source: Path,
        install_path: Path,
        content_root: Path,
        txn: Transaction,
    ) -> None:
        if content_root.exists():
            txn.plan(
                ActionKind.BACKUP,
                f"Would move existing files {self._relative(content_root)} aside",
                content_root,
            )
        txn.plan(
            ActionKind.CREATE_DIR,
            f"Would create directory structure at {install_path}",
            install_path,
        )
        txn.plan(
            ActionKind.COPY_FILE,
            f"Would copy plugin files from {source} to {content_root}",
            content_root,
        )
        txn.plan(
            ActionKind.UPDATE_REGISTRY,
            f"Would update registry with {manifest.id}",
            self.store.registry_path,
        )

    def _stash_existing(
        self, manifest: InstallManifest, content_root: Path, txn: Transaction
    ) -> None:
        """
        Move previously installed plugin files aside.

        Only the content root is moved, so a framework's projects/, working/
        and archive/ survive a reinstall. The stash is restored on rollback and
        deleted on commit.
        """
        if not content_root.exists():
            return

        stamp = format_timestamp(utc_now()).replace(":", "").replace(".", "")
        stash = self.settings.backup_path / "stash" / f"{manifest.id}-{stamp}"
        fs_ops.move_tree(content_root, stash)

        def restore() -> None:
            fs_ops.remove_tree(content_root)
            fs_ops.move_tree(stash, content_root)

        txn.push_undo(restore, f"restore {content_root}")
        txn.on_commit(lambda: fs_ops.remove_tree(stash), f"remove stash {stash}")
        txn.record(
            ActionKind.BACKUP,
            f"Moved existing files {self._relative(content_root)} aside",
            stash,
        )

    def _create_directory_structure(
        self, kind: PluginKind, install_path: Path, txn: Transaction
    ) -> None:
        dirs = [install_path]
        if kind.has_workspace:
            dirs.extend(install_path / name for name in WORKSPACE_DIRS)

        for directory in dirs:
            for created in fs_ops.make_dirs(directory):
                txn.push_undo(
                    lambda path=created: fs_ops.remove_tree(path), f"remove {created}"
                )
            txn.record(
                ActionKind.CREATE_DIR,
                f"Created directory: {self._relative(directory)}",
                directory,
            )

    def _copy_plugin_files(self, source: Path, content_root: Path, txn: Transaction) -> None:
        fs_ops.copy_tree(source, content_root)
        txn.push_undo(lambda: fs_ops.remove_tree(content_root), f"remove {content_root}")
        txn.record(
            ActionKind.COPY_FILE,
            f"Copied plugin files to {self._relative(content_root)}",
            content_root,
        )

    def _update_registry(
        self, manifest: InstallManifest, install_path: Path, txn: Transaction
    ) -> None:
        snapshot = self.store.snapshot()
        txn.push_undo(lambda: self.store.restore(snapshot), "restore registry")

        document = self.store.load_or_empty()
        document.remove(manifest.id)
        entry = RegistryEntry.from_manifest(
            manifest, self._relative(install_path), format_timestamp(utc_now())
        )
        document.plugins.append(entry)
        self.store.save(document)

        txn.record(
            ActionKind.UPDATE_REGISTRY,
            f"Updated registry: added {manifest.id} v{manifest.version}",
            self.store.registry_path,
        )

    def _relative(self, path: Path) -> str:
        return Path(os.path.relpath(path, self.root)).as_posix()

    def validate_plugin(self, source: str | Path) -> ManifestCheck:
        """
        Validate a plugin source's manifest without installing it.

        Args:
            source: Plugin source directory

        Returns:
            ManifestCheck with the parsed manifest or the validation error
        """
        try:
            manifest = load_manifest(Path(source).expanduser())
        except ManifestError as e:
            return ManifestCheck(valid=False, errors=[str(e)])
        return ManifestCheck(valid=True, manifest=manifest)

    def list_installed(self) -> list[RegistryEntry]:
        """All registered plugins; an absent registry means none."""
        return self.store.load_or_empty().plugins

    def get_plugin_info(self, plugin_id: str) -> RegistryEntry | None:
        return self.store.load_or_empty().get(plugin_id)
