"""End-to-end lifecycle tests through the PluginManager."""

import json

import pytest

from trellis.plugin.errors import DependentsExistError
from trellis.plugin.manager import PluginManager
from trellis.plugin.registry import HealthStatus


@pytest.fixture
def manager(root):
    return PluginManager.for_root(root)


class TestLifecycle:
    """Install a framework and an add-on, then remove them safely."""

    def test_framework_and_addon(self, manager, root, make_source):
        """Should install, refuse unsafe removal, then remove in order."""
        result = manager.install(make_source("sdlc-complete"))
        assert result.success, result.errors

        framework = manager.get_plugin("sdlc-complete")
        assert framework.path == "frameworks/sdlc-complete"
        for subdir in ("repo", "projects", "working", "archive"):
            assert (root / "frameworks" / "sdlc-complete" / subdir).is_dir()

        addon = make_source("gdpr-addon", "add-on", "0.1.0", parentFramework="sdlc-complete")
        assert manager.install(addon).success
        assert [p.id for p in manager.list_installed()] == ["sdlc-complete", "gdpr-addon"]

        blocked = manager.uninstall("sdlc-complete")
        assert not blocked.success
        assert isinstance(blocked.error, DependentsExistError)
        assert "gdpr-addon" in blocked.errors[0]
        assert len(manager.list_installed()) == 2

        order = manager.uninstall_order("sdlc-complete")
        assert order == ["gdpr-addon", "sdlc-complete"]
        for plugin_id in order:
            assert manager.uninstall(plugin_id).success

        registry = json.loads(manager.settings.registry_path.read_text())
        assert registry["plugins"] == []
        assert not (root / "frameworks" / "sdlc-complete").exists()
        assert not (root / "add-ons" / "gdpr-addon").exists()

    def test_validate_and_status(self, manager, make_source):
        """Should agree that a fresh install is consistent and healthy."""
        manager.install(make_source("sdlc-complete"))
        manager.install(make_source("tools", "extension"))

        assert manager.validate().valid
        assert manager.validator().is_consistent()
        assert all(r.health is HealthStatus.HEALTHY for r in manager.status.get_status())

    def test_get_unknown_plugin(self, manager):
        """Should return None for an unregistered plugin."""
        assert manager.get_plugin("ghost") is None
