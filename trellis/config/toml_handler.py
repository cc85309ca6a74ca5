"""
TOML File I/O.

Reads settings with tomllib and writes them with tomlkit so that comments
written by `render_settings_toml` survive later edits.
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from trellis.config.schema import ConfigField


class TOMLError(Exception):
    """Raised when a TOML file cannot be read, parsed or written."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed document as a dictionary

    Raises:
        TOMLError: If the file is missing, unreadable or not valid TOML
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, content: str) -> None:
    """
    Write a TOML document, creating parent directories.

    Args:
        file_path: Destination path
        content: TOML text, as rendered by render_settings_toml

    Raises:
        TOMLError: If the file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def render_settings_toml(
    table_name: str, schema: dict[str, ConfigField], values: dict[str, Any]
) -> str:
    """
    Render a settings table as TOML, one comment block per field.

    Args:
        table_name: Name of the TOML table (e.g. "trellis")
        schema: Field name -> ConfigField
        values: Field name -> value; missing keys fall back to defaults

    Returns:
        TOML text
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment(f"{table_name} settings"))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    for name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if field.choices is not None:
            constraints.append(f"choices: {', '.join(map(str, field.choices))}")
        if constraints:
            table.add(tomlkit.comment(f"Constraints: {'; '.join(constraints)}"))

        table.add(name, values.get(name, field.default))
        table.add(tomlkit.nl())

    doc.add(table_name, table)
    return tomlkit.dumps(doc)
