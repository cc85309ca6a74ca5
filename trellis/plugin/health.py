"""
Plugin Health Evaluation.

One per-plugin health check shared by the registry validator and the status
reporter, so both always agree on what "healthy" means.

Key features:
- Directory existence and type check
- Manifest presence in the plugin's content root
- Framework projects/ directory check
- Parent framework reference check
- Cached health staleness check
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from trellis.plugin.installer import get_content_root
from trellis.plugin.manifest import MANIFEST_FILENAME, PluginKind
from trellis.plugin.registry import (
    HealthSnapshot,
    HealthStatus,
    RegistryEntry,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

DEFAULT_STALE_HOURS = 24


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCategory(Enum):
    """Categories of consistency and health findings."""

    MISSING = "missing"
    ORPHANED = "orphaned"
    MISMATCH = "mismatch"
    INVALID_REF = "invalid-ref"
    STALE_HEALTH = "stale-health"


@dataclass
class HealthIssue:
    """
    A single health finding for one plugin.

    Attributes:
        severity: Error or warning
        category: Kind of finding
        message: Human-readable message
        path: Path concerned, if any
        suggestion: Suggested remediation
    """

    severity: Severity
    category: IssueCategory
    message: str
    path: Path | None = None
    suggestion: str | None = None


@dataclass
class HealthReport:
    """Evaluated health of one plugin."""

    status: HealthStatus
    issues: list[HealthIssue] = field(default_factory=list)
    checked_at: str = ""

    @property
    def messages(self) -> list[str]:
        return [issue.message for issue in self.issues]

    def snapshot(self) -> HealthSnapshot:
        """The registry-cacheable form of this report."""
        return HealthSnapshot(status=self.status, last_check=self.checked_at, issues=self.messages)


def status_from_issues(issues: list[HealthIssue]) -> HealthStatus:
    if any(issue.severity is Severity.ERROR for issue in issues):
        return HealthStatus.ERROR
    if issues:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


class HealthEvaluator:
    """
    Evaluates a registry entry against the filesystem.

    Example:
        evaluator = HealthEvaluator(settings.root, stale_threshold_hours=24)
        report = evaluator.evaluate(entry, frameworks=document.framework_ids())
        report.status                  # HealthStatus.WARNING
        report.messages                # ["Manifest file not found: ..."]
    """

    def __init__(self, root: Path, stale_threshold_hours: float = DEFAULT_STALE_HOURS):
        self.root = Path(root)
        self.stale_threshold_hours = stale_threshold_hours

    def evaluate(
        self,
        entry: RegistryEntry,
        frameworks: set[str] | None = None,
        now: datetime | None = None,
    ) -> HealthReport:
        """
        Evaluate one plugin.

        Args:
            entry: Registry entry to check
            frameworks: Registered framework ids; the parent reference is only
                checked when this is given
            now: Reference time for the staleness check

        Returns:
            HealthReport with every finding and the derived status
        """
        now = now or utc_now()
        issues: list[HealthIssue] = []
        plugin_path = self.root / entry.path

        directory_ok = self._check_directory(entry, plugin_path, issues)
        self._check_manifest(entry, plugin_path, issues)

        if entry.kind is PluginKind.FRAMEWORK and directory_ok:
            self._check_projects(plugin_path, issues)

        if frameworks is not None and entry.parent_framework:
            if entry.parent_framework not in frameworks:
                issues.append(
                    HealthIssue(
                        Severity.ERROR,
                        IssueCategory.INVALID_REF,
                        f"Parent framework not found: {entry.parent_framework}",
                        suggestion="Install the parent framework or update the "
                        "plugin's parentFramework field",
                    )
                )

        self._check_staleness(entry, now, issues)

        return HealthReport(
            status=status_from_issues(issues),
            issues=issues,
            checked_at=format_timestamp(now),
        )

    def stale_hours(self, entry: RegistryEntry, now: datetime | None = None) -> float | None:
        """
        Age of the cached health snapshot in hours.

        Returns:
            None when the entry has no usable lastCheck
        """
        if entry.health is None or not entry.health.last_check:
            return None
        try:
            last_check = parse_timestamp(entry.health.last_check)
        except ValueError:
            return None
        return ((now or utc_now()) - last_check).total_seconds() / 3600

    def _check_directory(
        self, entry: RegistryEntry, plugin_path: Path, issues: list[HealthIssue]
    ) -> bool:
        if not plugin_path.exists():
            issues.append(
                HealthIssue(
                    Severity.ERROR,
                    IssueCategory.MISSING,
                    f"Plugin directory not found: {entry.path}",
                    path=plugin_path,
                    suggestion=f"Run 'tpm -R {entry.id} --force' to remove it from the "
                    "registry, or reinstall the plugin",
                )
            )
            return False
        if not plugin_path.is_dir():
            issues.append(
                HealthIssue(
                    Severity.ERROR,
                    IssueCategory.MISMATCH,
                    f"Plugin path exists but is not a directory: {entry.path}",
                    path=plugin_path,
                    suggestion="Remove the file and reinstall the plugin",
                )
            )
            return False
        return True

    def _check_manifest(
        self, entry: RegistryEntry, plugin_path: Path, issues: list[HealthIssue]
    ) -> None:
        manifest_path = get_content_root(entry.kind, plugin_path) / MANIFEST_FILENAME
        if not manifest_path.is_file():
            relative = Path(entry.path, manifest_path.relative_to(plugin_path)).as_posix()
            issues.append(
                HealthIssue(
                    Severity.WARNING,
                    IssueCategory.MISSING,
                    f"Manifest file not found: {relative}",
                    path=manifest_path,
                    suggestion="Plugin may be incomplete or corrupted",
                )
            )

    def _check_projects(self, plugin_path: Path, issues: list[HealthIssue]) -> None:
        projects_path = plugin_path / "projects"
        if not projects_path.exists():
            message = "No projects directory (framework has no active projects)"
        elif not projects_path.is_dir():
            message = "Projects path exists but is not a directory"
        else:
            return
        issues.append(
            HealthIssue(Severity.WARNING, IssueCategory.MISMATCH, message, path=projects_path)
        )

    def _check_staleness(
        self, entry: RegistryEntry, now: datetime, issues: list[HealthIssue]
    ) -> None:
        hours = self.stale_hours(entry, now)
        if hours is None or hours <= self.stale_threshold_hours:
            return
        issues.append(
            HealthIssue(
                Severity.WARNING,
                IssueCategory.STALE_HEALTH,
                f"Health check is stale ({int(hours)} hours old)",
                suggestion=f"Run 'tpm -Q {entry.id} --record' to update health status",
            )
        )
