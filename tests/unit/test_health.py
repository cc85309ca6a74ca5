"""Tests for shared plugin health evaluation."""

from datetime import timedelta

import pytest

from trellis.plugin.health import (
    HealthEvaluator,
    HealthIssue,
    IssueCategory,
    Severity,
    status_from_issues,
)
from trellis.plugin.manifest import PluginKind
from trellis.plugin.registry import (
    HealthSnapshot,
    HealthStatus,
    RegistryEntry,
    format_timestamp,
    utc_now,
)


def make_entry(plugin_id, kind=PluginKind.EXTENSION, parent=None, last_check=None):
    health = HealthSnapshot(HealthStatus.HEALTHY, last_check) if last_check else None
    return RegistryEntry(
        id=plugin_id,
        kind=kind,
        name=plugin_id,
        version="1.0.0",
        path=f"{kind.dir_name}/{plugin_id}",
        installed_at="2025-01-01T00:00:00.000Z",
        parent_framework=parent,
        health=health,
    )


def lay_out(root, entry, manifest=True, projects=True):
    """Create the on-disk layout an installed entry would have."""
    plugin_dir = root / entry.path
    content = plugin_dir / "repo" if entry.kind is PluginKind.FRAMEWORK else plugin_dir
    content.mkdir(parents=True)
    if manifest:
        (content / "manifest.json").write_text("{}")
    if entry.kind is PluginKind.FRAMEWORK and projects:
        (plugin_dir / "projects").mkdir()
    return plugin_dir


@pytest.fixture
def evaluator(root):
    return HealthEvaluator(root)


def categories(report):
    return [(i.severity, i.category) for i in report.issues]


class TestHealthEvaluator:
    """Test per-plugin checks."""

    def test_healthy_framework(self, evaluator, root):
        """Should find nothing wrong with a complete framework."""
        entry = make_entry("sdlc-complete", PluginKind.FRAMEWORK)
        lay_out(root, entry)

        report = evaluator.evaluate(entry)

        assert report.status is HealthStatus.HEALTHY
        assert report.issues == []

    def test_missing_directory(self, evaluator):
        """Should report a missing directory as an error."""
        report = evaluator.evaluate(make_entry("tools"))

        assert report.status is HealthStatus.ERROR
        assert (Severity.ERROR, IssueCategory.MISSING) in categories(report)
        assert "Plugin directory not found: extensions/tools" in report.messages

    def test_path_is_file(self, evaluator, root):
        """Should report a file in place of the directory as a mismatch."""
        entry = make_entry("tools")
        (root / "extensions").mkdir()
        (root / "extensions" / "tools").write_text("not a directory")

        report = evaluator.evaluate(entry)

        assert report.status is HealthStatus.ERROR
        assert (Severity.ERROR, IssueCategory.MISMATCH) in categories(report)

    def test_missing_manifest_is_warning(self, evaluator, root):
        """Should only warn when the manifest is missing."""
        entry = make_entry("tools")
        lay_out(root, entry, manifest=False)

        report = evaluator.evaluate(entry)

        assert report.status is HealthStatus.WARNING
        assert categories(report) == [(Severity.WARNING, IssueCategory.MISSING)]
        assert report.messages == ["Manifest file not found: extensions/tools/manifest.json"]

    def test_framework_manifest_in_repo(self, evaluator, root):
        """Should look for a framework's manifest under repo/."""
        entry = make_entry("sdlc-complete", PluginKind.FRAMEWORK)
        lay_out(root, entry, manifest=False)

        report = evaluator.evaluate(entry)

        assert report.messages == ["Manifest file not found: frameworks/sdlc-complete/repo/manifest.json"]

    def test_framework_without_projects(self, evaluator, root):
        """Should warn when a framework has no projects directory."""
        entry = make_entry("sdlc-complete", PluginKind.FRAMEWORK)
        lay_out(root, entry, projects=False)

        report = evaluator.evaluate(entry)

        assert report.status is HealthStatus.WARNING
        assert categories(report) == [(Severity.WARNING, IssueCategory.MISMATCH)]

    def test_parent_reference(self, evaluator, root):
        """Should check the parent only when frameworks are supplied."""
        entry = make_entry("gdpr-addon", PluginKind.ADD_ON, parent="sdlc-complete")
        lay_out(root, entry)

        assert evaluator.evaluate(entry).status is HealthStatus.HEALTHY
        assert evaluator.evaluate(entry, frameworks={"sdlc-complete"}).status is HealthStatus.HEALTHY

        report = evaluator.evaluate(entry, frameworks=set())
        assert report.status is HealthStatus.ERROR
        assert categories(report) == [(Severity.ERROR, IssueCategory.INVALID_REF)]
        assert report.messages == ["Parent framework not found: sdlc-complete"]

    def test_stale_health(self, root):
        """Should warn once the cached snapshot exceeds the threshold."""
        old = format_timestamp(utc_now() - timedelta(hours=48))
        entry = make_entry("tools", last_check=old)
        lay_out(root, entry)

        report = HealthEvaluator(root, stale_threshold_hours=24).evaluate(entry)
        assert report.status is HealthStatus.WARNING
        assert categories(report) == [(Severity.WARNING, IssueCategory.STALE_HEALTH)]
        assert "48 hours old" in report.messages[0]

        relaxed = HealthEvaluator(root, stale_threshold_hours=72).evaluate(entry)
        assert relaxed.status is HealthStatus.HEALTHY

    def test_unparseable_last_check_ignored(self, evaluator, root):
        """Should not report staleness for an unreadable timestamp."""
        entry = make_entry("tools", last_check="yesterday")
        lay_out(root, entry)
        assert evaluator.evaluate(entry).status is HealthStatus.HEALTHY

    def test_snapshot(self, evaluator, root):
        """Should turn a report into a cacheable snapshot."""
        entry = make_entry("tools")
        lay_out(root, entry, manifest=False)

        report = evaluator.evaluate(entry)
        snapshot = report.snapshot()

        assert snapshot.status is HealthStatus.WARNING
        assert snapshot.last_check == report.checked_at
        assert snapshot.issues == report.messages


class TestStatusFromIssues:
    """Test status derivation."""

    def test_derivation(self):
        """Should rank error above warning above healthy."""
        warning = HealthIssue(Severity.WARNING, IssueCategory.MISSING, "w")
        error = HealthIssue(Severity.ERROR, IssueCategory.MISSING, "e")

        assert status_from_issues([]) is HealthStatus.HEALTHY
        assert status_from_issues([warning]) is HealthStatus.WARNING
        assert status_from_issues([warning, error]) is HealthStatus.ERROR
