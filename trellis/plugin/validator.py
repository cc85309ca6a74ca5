"""
Registry Consistency Validator.

Read-only auditor comparing the registry against the filesystem.

Key features:
- Per-plugin checks through the shared health evaluator
- Orphaned directory detection under each kind directory
- Parent framework reference validation
- Aggregate statistics
- Text and JSON reports
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from trellis.config import Settings
from trellis.plugin.errors import RegistryError
from trellis.plugin.health import (
    DEFAULT_STALE_HOURS,
    HealthEvaluator,
    HealthIssue,
    IssueCategory,
    Severity,
)
from trellis.plugin.manifest import PluginKind
from trellis.plugin.registry import HealthStatus, RegistryDocument, RegistryEntry, RegistryStore

logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    """
    A consistency finding. Findings are returned, never raised.

    Attributes:
        severity: Error or warning
        category: Kind of finding
        message: Human-readable message
        plugin_id: Plugin concerned, if any
        path: Path concerned, if any
        suggestion: Suggested remediation
    """

    severity: Severity
    category: IssueCategory
    message: str
    plugin_id: str | None = None
    path: Path | None = None
    suggestion: str | None = None

    @classmethod
    def from_health(cls, plugin_id: str, issue: HealthIssue) -> "ValidationIssue":
        return cls(
            severity=issue.severity,
            category=issue.category,
            message=issue.message,
            plugin_id=plugin_id,
            path=issue.path,
            suggestion=issue.suggestion,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.severity.value,
            "category": self.category.value,
            "message": self.message,
        }
        if self.plugin_id:
            data["pluginId"] = self.plugin_id
        if self.path is not None:
            data["path"] = str(self.path)
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


@dataclass
class ValidationStats:
    total_plugins: int = 0
    healthy_plugins: int = 0
    orphaned_plugins: int = 0
    # Reported for compatibility; nothing counts into it
    missing_plugins: int = 0
    invalid_refs: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalPlugins": self.total_plugins,
            "healthyPlugins": self.healthy_plugins,
            "orphanedPlugins": self.orphaned_plugins,
            "missingPlugins": self.missing_plugins,
            "invalidRefs": self.invalid_refs,
        }


@dataclass
class RegistryValidationResult:
    valid: bool = True
    issues: list[ValidationIssue] = field(default_factory=list)
    stats: ValidationStats = field(default_factory=ValidationStats)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.WARNING]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": [i.to_dict() for i in self.issues],
            "stats": self.stats.to_dict(),
        }


@dataclass
class ValidationOptions:
    check_filesystem: bool = True
    check_framework_refs: bool = True
    check_health_staleness: bool = True
    health_stale_threshold_hours: float = DEFAULT_STALE_HOURS


class RegistryValidator:
    """
    Validates the registry against the plugin root.

    Example:
        validator = RegistryValidator(settings)
        result = validator.validate()
        if not result.valid:
            print(validator.generate_report())
    """

    def __init__(self, settings: Settings, options: ValidationOptions | None = None):
        """
        Initialize RegistryValidator.

        Args:
            settings: Resolved settings
            options: Which checks to run; the staleness threshold defaults to
                the configured health_stale_hours
        """
        self.settings = settings
        self.root = settings.root
        self.store = RegistryStore(settings.registry_path)
        self.options = options or ValidationOptions(
            health_stale_threshold_hours=settings.health_stale_hours
        )
        self.evaluator = HealthEvaluator(self.root, self.options.health_stale_threshold_hours)

    def validate(self) -> RegistryValidationResult:
        """
        Validate the entire registry.

        Returns:
            RegistryValidationResult; valid is False iff any error was found
        """
        result = RegistryValidationResult()

        try:
            document = self.store.load()
        except RegistryError as e:
            result.valid = False
            result.issues.append(
                ValidationIssue(
                    Severity.ERROR,
                    IssueCategory.MISSING,
                    f"Failed to load registry: {e}",
                    path=self.store.registry_path,
                    suggestion="Install a plugin with 'tpm -S' to create a new registry",
                )
            )
            return result

        result.stats.total_plugins = len(document.plugins)

        for entry in document.plugins:
            result.issues.extend(self._validate_plugin(entry))
            if entry.health is not None and entry.health.status is HealthStatus.HEALTHY:
                result.stats.healthy_plugins += 1

        if self.options.check_filesystem:
            orphaned = self._find_orphaned_directories(document)
            result.stats.orphaned_plugins = sum(
                1 for i in orphaned if i.category is IssueCategory.ORPHANED
            )
            result.issues.extend(orphaned)

        if self.options.check_framework_refs:
            invalid_refs = self._validate_framework_references(document)
            result.stats.invalid_refs = len(invalid_refs)
            result.issues.extend(invalid_refs)

        result.valid = not result.errors
        logger.debug(
            "Validated registry: %d plugin(s), %d issue(s)",
            result.stats.total_plugins,
            len(result.issues),
        )
        return result

    def _validate_plugin(self, entry: RegistryEntry) -> list[ValidationIssue]:
        report = self.evaluator.evaluate(entry)
        issues = []
        for issue in report.issues:
            if issue.category is IssueCategory.STALE_HEALTH:
                if not self.options.check_health_staleness:
                    continue
            elif not self.options.check_filesystem:
                continue
            issues.append(ValidationIssue.from_health(entry.id, issue))
        return issues

    def _find_orphaned_directories(self, document: RegistryDocument) -> list[ValidationIssue]:
        """Subdirectories of each kind directory with no registry entry."""
        registered = {Path(p.path).as_posix() for p in document.plugins}
        issues = []

        for kind in PluginKind:
            kind_dir = self.root / kind.dir_name
            try:
                children = sorted(kind_dir.iterdir())
            except FileNotFoundError:
                continue
            except OSError as e:
                issues.append(
                    ValidationIssue(
                        Severity.WARNING,
                        IssueCategory.MISMATCH,
                        f"Failed to scan directory: {e}",
                        path=kind_dir,
                    )
                )
                continue

            for child in children:
                if not child.is_dir():
                    continue
                relative = f"{kind.dir_name}/{child.name}"
                if relative in registered:
                    continue
                issues.append(
                    ValidationIssue(
                        Severity.WARNING,
                        IssueCategory.ORPHANED,
                        f"Directory exists but not in registry: {relative}",
                        path=child,
                        suggestion=f"Reinstall it with 'tpm -S --force' or delete {relative}",
                    )
                )

        return issues

    def _validate_framework_references(self, document: RegistryDocument) -> list[ValidationIssue]:
        frameworks = document.framework_ids()
        return [
            ValidationIssue(
                Severity.ERROR,
                IssueCategory.INVALID_REF,
                f"Plugin '{p.id}' references non-existent framework: {p.parent_framework}",
                plugin_id=p.id,
                suggestion="Install the parent framework or update the plugin's "
                "parentFramework field",
            )
            for p in document.plugins
            if p.parent_framework and p.parent_framework not in frameworks
        ]

    def is_consistent(self) -> bool:
        return self.validate().valid

    def get_orphaned_plugins(self) -> list[str]:
        """Registered plugin ids whose directory is missing."""
        ids = []
        for issue in self.validate().issues:
            if (
                issue.category is IssueCategory.MISSING
                and issue.severity is Severity.ERROR
                and issue.plugin_id
                and issue.plugin_id not in ids
            ):
                ids.append(issue.plugin_id)
        return ids

    def get_missing_plugins(self) -> list[Path]:
        """Directories on disk that are missing from the registry."""
        return [
            issue.path
            for issue in self.validate().issues
            if issue.category is IssueCategory.ORPHANED and issue.path is not None
        ]

    def generate_report(self, format: str = "text") -> str:
        """
        Validate and render the result.

        Args:
            format: "text" or "json"

        Returns:
            Report string
        """
        return self.render_report(self.validate(), format)

    def render_report(self, result: RegistryValidationResult, format: str = "text") -> str:
        """Render an existing validation result as text or JSON."""
        if format == "json":
            return json.dumps(result.to_dict(), indent=2)
        if format != "text":
            raise ValueError(f"Unknown report format: {format}")
        return self._text_report(result)

    def _text_report(self, result: RegistryValidationResult) -> str:
        lines = ["Registry Validation Report", "=" * 50, ""]
        lines.append(f"Status: {'✓ VALID' if result.valid else '✗ INVALID'}")
        lines.append("")

        stats = result.stats
        lines.append("Statistics:")
        lines.append(f"  Total Plugins:    {stats.total_plugins}")
        lines.append(f"  Healthy:          {stats.healthy_plugins}")
        lines.append(f"  Orphaned:         {stats.orphaned_plugins}")
        lines.append(f"  Missing:          {stats.missing_plugins}")
        lines.append(f"  Invalid Refs:     {stats.invalid_refs}")
        lines.append("")

        if not result.issues:
            lines.append("No issues found.")
            return "\n".join(lines)

        lines.append("Issues:")
        lines.append("-" * 50)
        for title, icon, issues in (
            ("Errors", "✗", result.errors),
            ("Warnings", "⚠", result.warnings),
        ):
            if not issues:
                continue
            lines.append("")
            lines.append(f"{title}:")
            for issue in issues:
                prefix = f"[{issue.plugin_id}] " if issue.plugin_id else ""
                lines.append(f"  {icon} {prefix}{issue.message}")
                if issue.suggestion:
                    lines.append(f"    → {issue.suggestion}")

        return "\n".join(lines)
