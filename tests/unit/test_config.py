"""
Tests for the settings layer.

This test suite covers:
1. Field definitions and validation
2. Whole-table validation
3. Root resolution and settings loading
4. Default settings file generation
5. Read-only runtime access
"""

from pathlib import Path

import pytest

from trellis.config import (
    SETTINGS_FILE,
    ConfigError,
    SettingsError,
    load_settings,
    resolve_root,
    write_default_config,
)
from trellis.config.schema import ConfigField, SchemaError, ValidationError, validate_settings
from trellis.config.toml_handler import TOMLError, read_toml


class TestSchemaValidation:
    """Test ConfigField definitions."""

    def test_field_basic_types(self):
        """ConfigField should validate basic types."""
        ConfigField(int, 42, "Integer").validate(7)
        ConfigField(float, 0.5, "Float").validate(1.5)
        ConfigField(str, "hello", "String").validate("world")
        ConfigField(bool, True, "Boolean").validate(False)

        with pytest.raises(ValidationError, match="Expected type"):
            ConfigField(int, 42, "Integer").validate("42")

    def test_field_default_must_match_type(self):
        """ConfigField default must match the declared type."""
        with pytest.raises(SchemaError, match="does not match type"):
            ConfigField(int, "not an int", "Bad default")

    def test_bool_is_not_int(self):
        """ConfigField should not accept a bool for an int field."""
        with pytest.raises(SchemaError):
            ConfigField(int, True, "Hours")

        with pytest.raises(ValidationError, match="Expected type"):
            ConfigField(int, 24, "Hours").validate(False)

    def test_field_min_max_constraints(self):
        """ConfigField should enforce numeric bounds."""
        field = ConfigField(int, 24, "Hours", min=1, max=100)

        field.validate(1)
        field.validate(100)

        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate(0)

        with pytest.raises(ValidationError, match="greater than maximum"):
            field.validate(101)

    def test_field_string_length_constraints(self):
        """ConfigField should treat min/max as length bounds for strings."""
        field = ConfigField(str, "registry.json", "File", min=1, max=20)

        field.validate("a")

        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate("")

        with pytest.raises(ValidationError, match="greater than maximum"):
            field.validate("x" * 21)

    def test_field_bounds_unsupported_type(self):
        """ConfigField should reject min/max on types without ordering."""
        with pytest.raises(SchemaError, match="only supported"):
            ConfigField(list, [], "List", min=1)

    def test_field_choices_constraint(self):
        """ConfigField should accept choices constraint."""
        field = ConfigField(str, "INFO", "Level", choices=["DEBUG", "INFO"])

        field.validate("DEBUG")

        with pytest.raises(ValidationError, match="not in allowed choices"):
            field.validate("TRACE")

    def test_field_choices_default_must_be_in_choices(self):
        """ConfigField default must be in choices if choices specified."""
        with pytest.raises(SchemaError, match="not in choices"):
            ConfigField(str, "TRACE", "Level", choices=["DEBUG", "INFO"])


class TestValidateSettings:
    """Test whole-table validation."""

    SCHEMA = {
        "hours": ConfigField(int, 24, "Hours", min=1),
        "level": ConfigField(str, "INFO", "Level", choices=["INFO", "DEBUG"]),
    }

    def test_valid_table(self):
        """Should accept a complete, valid table."""
        validate_settings({"hours": 3, "level": "DEBUG"}, self.SCHEMA)

    def test_unknown_setting(self):
        """Should reject keys the schema does not declare."""
        with pytest.raises(ValidationError, match="Unknown setting: colour"):
            validate_settings({"hours": 3, "level": "INFO", "colour": "red"}, self.SCHEMA)

    def test_missing_setting(self):
        """Should reject a table that omits a declared key."""
        with pytest.raises(ValidationError, match="Missing required setting: level"):
            validate_settings({"hours": 3}, self.SCHEMA)

    def test_invalid_value_names_setting(self):
        """Should name the offending setting."""
        with pytest.raises(ValidationError, match="Setting 'hours'"):
            validate_settings({"hours": 0, "level": "INFO"}, self.SCHEMA)


class TestLoadSettings:
    """Test root resolution and loading."""

    def test_defaults(self, root):
        """Should use defaults when no settings file exists."""
        settings = load_settings(root)

        assert settings.root == root
        assert settings.source is None
        assert settings.health_stale_hours == 24
        assert settings.log_level == "WARNING"
        assert settings.registry_path == root / "registry.json"
        assert settings.backup_path == root / "backups"
        assert settings.archive_path == root / "archive" / "uninstalled"

    def test_file_overrides(self, root):
        """Should let the settings file override defaults."""
        (root / SETTINGS_FILE).write_text(
            "[trellis]\nhealth_stale_hours = 48\nregistry_file = \"plugins.json\"\n"
        )

        settings = load_settings(root)

        assert settings.health_stale_hours == 48
        assert settings.registry_path == root / "plugins.json"
        assert settings.log_level == "WARNING"
        assert settings.source == root / SETTINGS_FILE

    def test_explicit_config_file(self, root, workdir):
        """Should read an explicitly given settings file."""
        config = workdir / "custom.toml"
        config.write_text("[trellis]\nlog_level = \"DEBUG\"\n")

        assert load_settings(root, config).log_level == "DEBUG"

    def test_file_without_table(self, root):
        """Should fall back to defaults when the [trellis] table is absent."""
        (root / SETTINGS_FILE).write_text("[other]\nkey = 1\n")

        assert load_settings(root).health_stale_hours == 24

    def test_invalid_value(self, root):
        """Should raise ConfigError for a value that breaks a constraint."""
        (root / SETTINGS_FILE).write_text("[trellis]\nhealth_stale_hours = 0\n")

        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings(root)

    def test_unknown_key(self, root):
        """Should raise ConfigError for an undeclared key."""
        (root / SETTINGS_FILE).write_text("[trellis]\ncolour = \"red\"\n")

        with pytest.raises(ConfigError, match="Unknown setting"):
            load_settings(root)

    def test_malformed_toml(self, root):
        """Should raise ConfigError for unparseable TOML."""
        (root / SETTINGS_FILE).write_text("[trellis\n")

        with pytest.raises(ConfigError, match="Failed to parse"):
            load_settings(root)

    def test_table_must_be_table(self, root):
        """Should reject a non-table [trellis] value."""
        (root / SETTINGS_FILE).write_text("trellis = 3\n")

        with pytest.raises(ConfigError, match="must be a table"):
            load_settings(root)

    def test_root_from_environment(self, workdir, monkeypatch):
        """Should take the root from TRELLIS_HOME when none is given."""
        monkeypatch.setenv("TRELLIS_HOME", str(workdir / "env-root"))

        assert resolve_root() == workdir / "env-root"
        assert load_settings().root == workdir / "env-root"

    def test_explicit_root_beats_environment(self, root, workdir, monkeypatch):
        """Should prefer an explicit root over TRELLIS_HOME."""
        monkeypatch.setenv("TRELLIS_HOME", str(workdir / "env-root"))
        assert resolve_root(root) == root

    def test_default_root(self, monkeypatch):
        """Should expand the default root under the home directory."""
        monkeypatch.delenv("TRELLIS_HOME", raising=False)
        assert resolve_root() == Path("~/.local/share/trellis").expanduser()


class TestDefaultConfigFile:
    """Test default settings file generation."""

    def test_write_and_reload(self, root):
        """Should write a commented file that loads back to the defaults."""
        path = write_default_config(root / SETTINGS_FILE)

        text = path.read_text()
        assert "Age after which a cached health snapshot is reported as stale" in text
        assert "Constraints: choices: DEBUG, INFO, WARNING, ERROR" in text
        assert "health_stale_hours = 24" in text

        assert read_toml(path)["trellis"]["log_level"] == "WARNING"
        assert load_settings(root).as_dict() == load_settings(root.parent / "elsewhere").as_dict()

    def test_refuses_to_overwrite(self, root):
        """Should keep an existing file unless asked to overwrite."""
        path = write_default_config(root / SETTINGS_FILE)
        path.write_text("[trellis]\nhealth_stale_hours = 6\n")

        with pytest.raises(ConfigError, match="already exists"):
            write_default_config(path)

        write_default_config(path, overwrite=True)
        assert load_settings(root).health_stale_hours == 24

    def test_read_missing_file(self, workdir):
        """Should raise TOMLError for a missing file."""
        with pytest.raises(TOMLError, match="not found"):
            read_toml(workdir / "missing.toml")


class TestRuntimeSettings:
    """Test the read-only Settings object."""

    def test_read_only(self, settings):
        """Settings should reject writes."""
        with pytest.raises(SettingsError, match="read-only"):
            settings.health_stale_hours = 1

    def test_unknown_attribute(self, settings):
        """Settings should reject undeclared names."""
        with pytest.raises(AttributeError, match="Unknown setting"):
            _ = settings.colour
