"""Tests for the tpm command line."""

import json

import pytest

from tpm.cli import main
from trellis.plugin.manager import PluginManager
from trellis.plugin.uninstaller import UninstallOptions
from trellis.plugin.validator import ValidationOptions


@pytest.fixture
def tpm(root):
    """Run tpm against the temporary plugin root."""

    def _run(*argv):
        return main(["--root", str(root), *argv])

    return _run


@pytest.fixture
def framework_with_addon(tpm, make_source):
    assert tpm("-S", str(make_source("sdlc-complete"))) == 0
    addon = make_source("gdpr-addon", "add-on", "0.1.0", parentFramework="sdlc-complete")
    assert tpm("-S", str(addon)) == 0


class TestHelp:
    """Test help output."""

    def test_help_flag(self, capsys):
        """Should print help and succeed."""
        assert main(["-h"]) == 0
        assert "tpm - Trellis Plugin Manager" in capsys.readouterr().out

    def test_no_operation(self, capsys):
        """Should print help when no operation is given."""
        assert main([]) == 0
        assert "Usage:" in capsys.readouterr().out


class TestInstallCommand:
    """Test -S."""

    def test_install(self, tpm, root, make_source, capsys):
        """Should install and report the plugin."""
        code = tpm("-S", str(make_source("sdlc-complete")))

        assert code == 0
        assert "Installed sdlc-complete v1.0.0" in capsys.readouterr().out
        assert (root / "frameworks" / "sdlc-complete" / "repo" / "manifest.json").is_file()

    def test_install_failure(self, tpm, workdir, capsys):
        """Should exit non-zero and explain the failure on stderr."""
        code = tpm("-S", str(workdir / "nowhere"))

        captured = capsys.readouterr()
        assert code == 1
        assert "Failed to install" in captured.out
        assert "Error:" in captured.err

    def test_no_targets(self, tpm, capsys):
        """Should require at least one source."""
        assert tpm("-S") == 1
        assert "No targets specified" in capsys.readouterr().err

    def test_dry_run_json(self, tpm, root, make_source, capsys):
        """Should report the plan as JSON without installing."""
        code = tpm("-S", "--dry-run", "--format", "json", str(make_source("tools", "extension")))

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data["success"] is True
        assert data["pluginId"] == "tools"
        assert not (root / "extensions" / "tools").exists()


class TestRemoveCommand:
    """Test -R."""

    def test_declined_confirmation(self, tpm, root, framework_with_addon, monkeypatch, capsys):
        """Should abort when the prompt is declined."""
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert tpm("-R", "gdpr-addon") == 1
        assert "Aborted" in capsys.readouterr().err
        assert (root / "add-ons" / "gdpr-addon").is_dir()

    def test_noconfirm(self, tpm, root, framework_with_addon, capsys):
        """Should remove without prompting."""
        capsys.readouterr()

        assert tpm("-R", "--noconfirm", "gdpr-addon") == 0
        assert "Removed gdpr-addon" in capsys.readouterr().out
        assert not (root / "add-ons" / "gdpr-addon").exists()

    def test_blocked_by_dependents(self, tpm, framework_with_addon, capsys):
        """Should refuse to remove a framework with add-ons."""
        assert tpm("-R", "--noconfirm", "sdlc-complete") == 1
        assert "gdpr-addon" in capsys.readouterr().err

    def test_order(self, tpm, framework_with_addon, capsys):
        """Should print the safe removal order."""
        capsys.readouterr()

        assert tpm("-R", "--order", "sdlc-complete") == 0
        assert "sdlc-complete: gdpr-addon -> sdlc-complete" in capsys.readouterr().out


class TestQueryCommands:
    """Test -Q and -Qk."""

    def test_query_json(self, tpm, framework_with_addon, capsys):
        """Should print status as JSON."""
        capsys.readouterr()

        assert tpm("-Q", "--format", "json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["summary"]["totalPlugins"] == 2
        assert [p["id"] for p in data["plugins"]] == ["sdlc-complete", "gdpr-addon"]

    def test_query_unknown_plugin(self, tpm, framework_with_addon, capsys):
        """Should fail for a plugin that is not installed."""
        assert tpm("-Q", "ghost") == 1
        assert "not installed" in capsys.readouterr().err

    def test_check_valid(self, tpm, framework_with_addon, capsys):
        """Should exit zero for a consistent registry."""
        capsys.readouterr()

        assert tpm("-Qk") == 0
        assert "Status: ✓ VALID" in capsys.readouterr().out

    def test_check_dangling_parent(self, tpm, root, framework_with_addon, capsys):
        """Should exit non-zero when an add-on lost its framework."""
        PluginManager.for_root(root).uninstall("sdlc-complete", UninstallOptions(force=True))
        capsys.readouterr()

        assert tpm("-Qk") == 1
        assert "non-existent framework: sdlc-complete" in capsys.readouterr().out

    def test_explicit_zero_stale_hours(self, tpm, framework_with_addon, monkeypatch):
        """Should pass an explicit --stale-hours 0 through instead of the default."""
        thresholds = []

        def recording_options(**kwargs):
            thresholds.append(kwargs["health_stale_threshold_hours"])
            return ValidationOptions(**kwargs)

        monkeypatch.setattr("tpm.commands.query.ValidationOptions", recording_options)
        tpm("-Qk", "--stale-hours", "0")
        tpm("-Qk")

        assert thresholds == [0, 24]

    def test_invalid_settings(self, tpm, root, capsys):
        """Should report a broken settings file."""
        (root / "trellis.toml").write_text("[trellis]\nhealth_stale_hours = -1\n")

        assert tpm("-Q") == 1
        assert "Invalid settings" in capsys.readouterr().err
