"""
Plugin Uninstaller.

This module removes installed plugins and their registry entries.

Key features:
- Reverse-dependency check (a framework cannot be removed while add-ons
  still name it as parent, unless forced)
- Safe uninstall ordering for a plugin and its transitive dependents
- Active project detection and optional archival
- Registry backup before mutation
- Removal statistics (files, directories, bytes)
- Dry-run previews and rollback on failure
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from trellis.config import Settings
from trellis.plugin import fs_ops
from trellis.plugin.errors import ConflictError, DependentsExistError, NotInstalledError
from trellis.plugin.manifest import PluginKind
from trellis.plugin.registry import RegistryEntry, RegistryStore, format_timestamp, utc_now
from trellis.plugin.transaction import ActionKind, ActionRecord, Transaction

logger = logging.getLogger(__name__)


@dataclass
class UninstallOptions:
    """
    Options for a single uninstall run.

    Attributes:
        force: Skip the dependent-plugin check
        dry_run: Record the planned actions without touching disk or registry
        keep_projects: Archive a framework's projects before removal
        skip_confirmation: Front ends should not prompt (the library never does)
    """

    force: bool = False
    dry_run: bool = False
    keep_projects: bool = False
    skip_confirmation: bool = False


@dataclass
class UninstallStats:
    files_removed: int = 0
    dirs_removed: int = 0
    bytes_freed: int = 0
    projects_archived: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "filesRemoved": self.files_removed,
            "dirsRemoved": self.dirs_removed,
            "bytesFreed": self.bytes_freed,
            "projectsArchived": self.projects_archived,
        }


@dataclass
class UninstallResult:
    """Outcome of an uninstall run."""

    plugin_id: str
    success: bool = False
    actions: list[ActionRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: UninstallStats = field(default_factory=UninstallStats)
    error: Exception | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "pluginId": self.plugin_id,
            "actions": [a.to_dict() for a in self.actions],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "stats": self.stats.to_dict(),
        }


@dataclass
class DependentPlugin:
    """A plugin that depends on another one."""

    id: str
    kind: PluginKind
    relationship: str = "parentFramework"


@dataclass
class UninstallCheck:
    """Whether a plugin can be uninstalled without force."""

    can_uninstall: bool
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)


class PluginUninstaller:
    """
    Removes plugins from a plugin root.

    Example:
        uninstaller = PluginUninstaller(settings)
        uninstaller.get_uninstall_order("sdlc-complete")   # ["gdpr-addon", "sdlc-complete"]
        result = uninstaller.uninstall("gdpr-addon")
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.root = settings.root
        self.store = RegistryStore(settings.registry_path)

    def uninstall(self, plugin_id: str, options: UninstallOptions | None = None) -> UninstallResult:
        """
        Uninstall a plugin.

        Never raises for lifecycle failures; they are reported in the result.

        Args:
            plugin_id: Registered plugin identifier
            options: Uninstall options

        Returns:
            UninstallResult with actions, errors, warnings and removal statistics
        """
        options = options or UninstallOptions()
        txn = Transaction(dry_run=options.dry_run)
        result = UninstallResult(plugin_id=plugin_id, actions=txn.actions)

        try:
            document = self.store.load_or_empty()
            plugin = document.get(plugin_id)
            if plugin is None:
                raise NotInstalledError(plugin_id)

            txn.record(
                ActionKind.VALIDATE,
                f"Found plugin: {plugin.name} v{plugin.version} ({plugin.kind.value})",
            )

            dependents = self.get_dependent_plugins(plugin_id)
            if not options.force:
                txn.record(
                    ActionKind.CHECK_DEPS,
                    f"Found {len(dependents)} dependent plugins"
                    if dependents
                    else "No dependent plugins found",
                )
                if dependents:
                    raise DependentsExistError(plugin_id, dependents)
            else:
                result.warnings.append("Dependency check skipped (--force)")
                if dependents:
                    names = ", ".join(d.id for d in dependents)
                    result.warnings.append(
                        f"Dependent plugins will be left without their parent: {names}"
                    )

            plugin_path = self.root / plugin.path

            if plugin.kind is PluginKind.FRAMEWORK:
                projects = self.get_active_projects(plugin)
                if projects:
                    result.warnings.append(
                        f"Plugin has {len(projects)} active project(s): {', '.join(projects)}"
                    )
                    if options.keep_projects:
                        self._archive_projects(plugin, projects, txn, result)

            if options.dry_run:
                txn.plan(
                    ActionKind.REMOVE_DIR,
                    f"Would remove directory: {plugin.path}",
                    plugin_path,
                )
                txn.plan(
                    ActionKind.UPDATE_REGISTRY,
                    f"Would remove {plugin_id} from registry",
                    self.store.registry_path,
                )
            else:
                self._backup_registry(txn)
                self._remove_directory(plugin, plugin_path, txn, result)
                self._remove_from_registry(plugin_id, txn)

            result.warnings.extend(txn.commit())
            result.success = True
            if not options.dry_run:
                logger.info("Uninstalled %s", plugin_id)

        except Exception as e:
            result.error = e
            if isinstance(e, (NotInstalledError, ConflictError)):
                result.errors.append(str(e))
            else:
                result.errors.append(f"Uninstall failed: {e}")
            logger.info("Uninstall of %s failed: %s", plugin_id, e)

            if txn.pending_undo:
                txn.record(ActionKind.ROLLBACK, "Rolling back changes due to error")
                failed = txn.rollback()
                if failed:
                    result.warnings.append(
                        f"Rollback incomplete: {failed} step(s) failed, leftover files may remain"
                    )

        return result

    def get_dependent_plugins(self, plugin_id: str) -> list[DependentPlugin]:
        """
        Plugins naming plugin_id as their parent framework.

        Args:
            plugin_id: Plugin identifier

        Returns:
            Direct dependents in registry order (empty if there is no registry)
        """
        document = self.store.load_or_empty()
        return [DependentPlugin(id=p.id, kind=p.kind) for p in document.dependents_of(plugin_id)]

    def get_uninstall_order(self, plugin_id: str) -> list[str]:
        """
        Order in which plugin_id and its transitive dependents can be removed.

        Post-order depth-first walk over the parent relation: every dependent
        is listed before the plugin it depends on, and plugin_id comes last.

        Args:
            plugin_id: Plugin identifier

        Returns:
            Plugin ids, safe to uninstall first to last
        """
        document = self.store.load_or_empty()
        order: list[str] = []
        visited: set[str] = set()

        def visit(current: str) -> None:
            if current in visited:
                return
            visited.add(current)
            for dependent in document.dependents_of(current):
                visit(dependent.id)
            order.append(current)

        visit(plugin_id)
        return order

    def get_active_projects(self, plugin: RegistryEntry) -> list[str]:
        """Project directories under a framework's projects/ tree."""
        return fs_ops.list_subdirectories(self.root / plugin.path / "projects")

    def can_uninstall(self, plugin_id: str) -> UninstallCheck:
        """
        Check whether a plugin can be removed without force.

        Args:
            plugin_id: Plugin identifier

        Returns:
            UninstallCheck with the blocking reason, or warnings only
        """
        plugin = self.store.load_or_empty().get(plugin_id)
        if plugin is None:
            return UninstallCheck(False, reason=f"Plugin '{plugin_id}' is not installed")

        dependents = self.get_dependent_plugins(plugin_id)
        if dependents:
            return UninstallCheck(
                False,
                reason=f"Plugin has {len(dependents)} dependent plugin(s): "
                f"{', '.join(d.id for d in dependents)}",
            )

        warnings = []
        if plugin.kind is PluginKind.FRAMEWORK:
            projects = self.get_active_projects(plugin)
            if projects:
                warnings.append(f"Plugin has {len(projects)} active project(s)")

        return UninstallCheck(True, warnings=warnings)

    def list_installed(self) -> list[RegistryEntry]:
        return self.store.load_or_empty().plugins

    def _archive_projects(
        self,
        plugin: RegistryEntry,
        projects: list[str],
        txn: Transaction,
        result: UninstallResult,
    ) -> None:
        """Copy each project to <archive>/<id>/<YYYY-MM>/<project>."""
        year_month = utc_now().astimezone().strftime("%Y-%m")
        archive_base = self.settings.archive_path / plugin.id / year_month
        projects_dir = self.root / plugin.path / "projects"

        for project in projects:
            dest = self._unique_archive_path(archive_base, project)
            if txn.dry_run:
                txn.plan(
                    ActionKind.ARCHIVE,
                    f"Would archive project: {project} -> {self._relative(dest)}",
                    dest,
                )
                continue

            for created in fs_ops.make_dirs(dest):
                txn.push_undo(
                    lambda path=created: fs_ops.remove_tree(path), f"remove {created}"
                )
            fs_ops.copy_tree(projects_dir / project, dest)
            result.stats.projects_archived += 1
            txn.record(
                ActionKind.ARCHIVE,
                f"Archived project: {project} -> {self._relative(dest)}",
                dest,
            )

    @staticmethod
    def _unique_archive_path(archive_base: Path, project: str) -> Path:
        """First of <project>, <project>-2, <project>-3, ... that does not exist yet."""
        dest = archive_base / project
        suffix = 2
        while dest.exists():
            dest = archive_base / f"{project}-{suffix}"
            suffix += 1
        return dest

    def _backup_registry(self, txn: Transaction) -> None:
        backup_path = self.store.backup(self.settings.backup_path)
        txn.push_undo(lambda: self.store.restore_backup(backup_path), "restore registry backup")
        txn.record(
            ActionKind.BACKUP,
            f"Backed up registry to {backup_path.name}",
            backup_path,
        )

    def _remove_directory(
        self,
        plugin: RegistryEntry,
        plugin_path: Path,
        txn: Transaction,
        result: UninstallResult,
    ) -> None:
        """
        Remove the plugin directory, counting what goes.

        The directory is moved to a stash first and deleted on commit, so a
        failed registry update can put it back.
        """
        if not plugin_path.exists():
            result.warnings.append(f"Plugin directory already removed: {plugin.path}")
            return

        stats = fs_ops.tree_stats(plugin_path)
        result.stats.files_removed = stats.files
        result.stats.dirs_removed = stats.dirs
        result.stats.bytes_freed = stats.bytes

        stamp = format_timestamp(utc_now()).replace(":", "").replace(".", "")
        stash = self.settings.backup_path / "stash" / f"{plugin.id}-{stamp}"
        fs_ops.move_tree(plugin_path, stash)
        txn.push_undo(lambda: fs_ops.move_tree(stash, plugin_path), f"restore {plugin_path}")
        txn.on_commit(lambda: fs_ops.remove_tree(stash), f"remove stash {stash}")

        txn.record(
            ActionKind.REMOVE_DIR,
            f"Removed directory: {plugin.path} "
            f"({stats.files} files, {fs_ops.format_bytes(stats.bytes)})",
            plugin_path,
        )

    def _remove_from_registry(self, plugin_id: str, txn: Transaction) -> None:
        document = self.store.load()
        if not document.remove(plugin_id):
            return
        self.store.save(document)
        txn.record(
            ActionKind.UPDATE_REGISTRY,
            f"Removed {plugin_id} from registry",
            self.store.registry_path,
        )

    def _relative(self, path: Path) -> str:
        return Path(os.path.relpath(path, self.root)).as_posix()
