"""
Plugin Status Reporter.

Per-plugin health and aggregate statistics for human consumption.

Key features:
- Status filtered by kind or plugin id
- Shared health evaluation (with parent framework check)
- Optional disk usage
- Summary counts and workspace mode detection
- Text and JSON reports
- Recording evaluated health back into the registry
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from trellis.config import Settings
from trellis.plugin import fs_ops
from trellis.plugin.health import HealthEvaluator
from trellis.plugin.manifest import PluginKind
from trellis.plugin.registry import HealthStatus, RegistryEntry, RegistryStore

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    HealthStatus.HEALTHY: "✓",
    HealthStatus.WARNING: "⚠",
    HealthStatus.ERROR: "✗",
}


@dataclass
class PluginStatusResult:
    """
    Evaluated status of one plugin.

    Attributes:
        entry: Registry entry
        health: Freshly evaluated status
        health_details: Messages of every finding
        disk_usage: Bytes on disk (verbose only)
    """

    entry: RegistryEntry
    health: HealthStatus
    health_details: list[str] = field(default_factory=list)
    disk_usage: int | None = None

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def kind(self) -> PluginKind:
        return self.entry.kind

    def to_dict(self) -> dict[str, Any]:
        data = self.entry.to_dict()
        data.pop("health", None)
        data["health"] = self.health.value
        data["healthDetails"] = list(self.health_details)
        if self.disk_usage is not None:
            data["diskUsage"] = self.disk_usage
        return data


@dataclass
class StatusSummary:
    total_plugins: int = 0
    healthy_count: int = 0
    warning_count: int = 0
    error_count: int = 0
    framework_count: int = 0
    add_on_count: int = 0
    extension_count: int = 0
    total_disk_usage: int = 0
    legacy_mode: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPlugins": self.total_plugins,
            "healthyCount": self.healthy_count,
            "warningCount": self.warning_count,
            "errorCount": self.error_count,
            "frameworkCount": self.framework_count,
            "addOnCount": self.add_on_count,
            "extensionCount": self.extension_count,
            "totalDiskUsage": self.total_disk_usage,
            "legacyMode": self.legacy_mode,
        }


class PluginStatus:
    """
    Reports plugin status.

    Example:
        status = PluginStatus(settings)
        for result in status.get_status(kind=PluginKind.FRAMEWORK):
            print(result.id, result.health.value)
        print(status.generate_report(verbose=True))
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.root = settings.root
        self.store = RegistryStore(settings.registry_path)
        self.evaluator = HealthEvaluator(self.root, settings.health_stale_hours)

    def get_status(
        self,
        kind: PluginKind | str | None = None,
        plugin_id: str | None = None,
        verbose: bool = False,
    ) -> list[PluginStatusResult]:
        """
        Evaluate installed plugins.

        Args:
            kind: Only plugins of this kind
            plugin_id: Only this plugin
            verbose: Also compute disk usage

        Returns:
            One result per matching plugin, in registry order

        Raises:
            RegistryError: If the registry exists but cannot be read
        """
        kind = PluginKind.parse(kind) if kind is not None else None
        document = self.store.load_or_empty()
        frameworks = document.framework_ids()

        results = []
        for entry in document.plugins:
            if kind is not None and entry.kind is not kind:
                continue
            if plugin_id is not None and entry.id != plugin_id:
                continue
            results.append(self._evaluate(entry, frameworks, verbose))
        return results

    def get_summary(self, verbose: bool = False) -> StatusSummary:
        """
        Aggregate counts over every installed plugin.

        Disk usage is only summed when verbose is set.
        """
        statuses = self.get_status(verbose=verbose)
        summary = StatusSummary(
            total_plugins=len(statuses),
            legacy_mode=not (self.root / PluginKind.FRAMEWORK.dir_name).is_dir(),
        )
        for status in statuses:
            if status.health is HealthStatus.HEALTHY:
                summary.healthy_count += 1
            elif status.health is HealthStatus.WARNING:
                summary.warning_count += 1
            else:
                summary.error_count += 1

            if status.kind is PluginKind.FRAMEWORK:
                summary.framework_count += 1
            elif status.kind is PluginKind.ADD_ON:
                summary.add_on_count += 1
            else:
                summary.extension_count += 1

            summary.total_disk_usage += status.disk_usage or 0
        return summary

    def record_health(self, plugin_id: str | None = None) -> list[PluginStatusResult]:
        """
        Evaluate plugins and store the results as their cached health.

        Args:
            plugin_id: Only refresh this plugin

        Returns:
            The evaluated results that were recorded
        """
        document = self.store.load()
        frameworks = document.framework_ids()
        recorded = []
        for entry in document.plugins:
            if plugin_id is not None and entry.id != plugin_id:
                continue
            # Evaluated without the cached snapshot so an old lastCheck cannot
            # keep the new one stale.
            entry.health = None
            report = self.evaluator.evaluate(entry, frameworks)
            entry.health = report.snapshot()
            recorded.append(PluginStatusResult(entry, report.status, report.messages))

        if recorded:
            self.store.save(document)
            logger.info("Recorded health for %d plugin(s)", len(recorded))
        return recorded

    def generate_report(
        self,
        kind: PluginKind | str | None = None,
        plugin_id: str | None = None,
        verbose: bool = False,
        format: str = "text",
    ) -> str:
        """
        Render status as text grouped by kind, or as JSON.

        Args:
            kind: Only plugins of this kind
            plugin_id: Only this plugin
            verbose: Include disk usage and every health finding
            format: "text" or "json"

        Returns:
            Report string
        """
        statuses = self.get_status(kind=kind, plugin_id=plugin_id, verbose=verbose)
        summary = self.get_summary(verbose=verbose)

        if format == "json":
            return json.dumps(
                {
                    "summary": summary.to_dict(),
                    "plugins": [s.to_dict() for s in statuses],
                },
                indent=2,
            )
        if format != "text":
            raise ValueError(f"Unknown report format: {format}")

        lines = ["Trellis - Plugin Status", "=" * 80, ""]
        lines.append("Summary:")
        lines.append(f"  Total Plugins:   {summary.total_plugins}")
        lines.append(f"  Frameworks:      {summary.framework_count}")
        lines.append(f"  Add-ons:         {summary.add_on_count}")
        lines.append(f"  Extensions:      {summary.extension_count}")
        lines.append("")
        lines.append(f"  Healthy:         {summary.healthy_count}")
        lines.append(f"  Warnings:        {summary.warning_count}")
        lines.append(f"  Errors:          {summary.error_count}")
        lines.append("")
        mode = "Legacy" if summary.legacy_mode else "Framework-scoped"
        lines.append(f"  Workspace Mode:  {mode}")
        if verbose:
            lines.append(f"  Total Disk Usage: {fs_ops.format_bytes(summary.total_disk_usage)}")
        lines.append("")

        kinds = [PluginKind.parse(kind)] if kind is not None else list(PluginKind)
        for section_kind in kinds:
            section = [s for s in statuses if s.kind is section_kind]
            lines.extend(self._section(section_kind, section, verbose))
            lines.append("")

        lines.append("=" * 80)
        return "\n".join(lines)

    def _evaluate(
        self, entry: RegistryEntry, frameworks: set[str], verbose: bool
    ) -> PluginStatusResult:
        report = self.evaluator.evaluate(entry, frameworks)
        result = PluginStatusResult(entry, report.status, report.messages)
        if verbose:
            result.disk_usage = self._disk_usage(entry)
        return result

    def _disk_usage(self, entry: RegistryEntry) -> int:
        path = self.root / entry.path
        if not path.is_dir():
            return 0
        return fs_ops.tree_stats(path).bytes

    def _section(
        self, kind: PluginKind, statuses: list[PluginStatusResult], verbose: bool
    ) -> list[str]:
        title = kind.dir_name.upper()
        lines = [f"{title} ({len(statuses)} installed)", "-" * 80]
        if not statuses:
            lines.append(f"  No {kind.dir_name} installed.")
            return lines

        for status in statuses:
            entry = status.entry
            lines.append(f"  {_STATUS_ICONS[status.health]} {entry.id} (v{entry.version})")
            if kind is PluginKind.FRAMEWORK:
                lines.append(f"     Path: {entry.path}")
                lines.append(f"     Projects: {len(entry.projects or [])}")
            elif kind is PluginKind.ADD_ON:
                lines.append(f"     Parent: {entry.parent_framework or 'none'}")
            if verbose and status.disk_usage is not None:
                lines.append(f"     Disk Usage: {fs_ops.format_bytes(status.disk_usage)}")
            if status.health_details and (verbose or status.health is not HealthStatus.HEALTHY):
                lines.append("     Issues:")
                lines.extend(f"       - {detail}" for detail in status.health_details)
        return lines
