"""
Settings Schema.

This module declares typed settings fields and validates values against them.

Key features:
- Field definitions with type, default, bounds and allowed choices
- Validation of a whole settings table (unknown and missing keys)
- Default table generation
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Raised when a field definition itself is inconsistent."""

    pass


class ValidationError(SchemaError):
    """Raised when a settings value fails validation."""

    pass


_BOUNDED_TYPES = (int, float, str)


@dataclass
class ConfigField:
    """
    A single settings field.

    Attributes:
        type_: Expected Python type of the value
        default: Value used when the settings file omits the key
        description: Human-readable description, written as a TOML comment
        min: Minimum value (numbers) or minimum length (strings)
        max: Maximum value (numbers) or maximum length (strings)
        choices: Allowed values (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if not self._is_instance(self.default):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in _BOUNDED_TYPES:
            raise SchemaError(
                f"min/max constraints only supported for int, float, str. Got {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def _is_instance(self, value: Any) -> bool:
        # bool is an int subclass; never let True pass as an hour count
        if self.type_ is not bool and isinstance(value, bool):
            return False
        return isinstance(value, self.type_)

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field.

        Args:
            value: Value read from the settings file

        Raises:
            ValidationError: If the value has the wrong type or breaks a constraint
        """
        if not self._is_instance(value):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        measured = len(value) if self.type_ is str else value
        label = "Length" if self.type_ is str else "Value"

        if self.min is not None and measured < self.min:
            raise ValidationError(f"{label} {measured} is less than minimum {self.min}")
        if self.max is not None and measured > self.max:
            raise ValidationError(f"{label} {measured} is greater than maximum {self.max}")


def validate_settings(values: dict[str, Any], schema: dict[str, ConfigField]) -> None:
    """
    Validate a full settings table against a schema.

    Args:
        values: Settings table (all schema keys must be present)
        schema: Field name -> ConfigField

    Raises:
        ValidationError: On unknown keys, missing keys or invalid values
    """
    for key in values:
        if key not in schema:
            raise ValidationError(f"Unknown setting: {key}")

    for name, field in schema.items():
        if name not in values:
            raise ValidationError(f"Missing required setting: {name}")
        try:
            field.validate(values[name])
        except ValidationError as e:
            raise ValidationError(f"Setting '{name}': {e}") from e


def default_settings(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """Build a settings table holding every field's default."""
    return {name: field.default for name, field in schema.items()}
