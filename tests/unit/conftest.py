"""Shared fixtures: temporary plugin roots and plugin source directories."""

import json
import tempfile
from pathlib import Path

import pytest

from trellis.config import load_settings


@pytest.fixture
def workdir():
    """Temporary directory holding a plugin root and plugin sources."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def root(workdir):
    path = workdir / "root"
    path.mkdir()
    return path


@pytest.fixture
def settings(root):
    return load_settings(root)


@pytest.fixture
def make_source(workdir):
    """Factory writing a plugin source directory with a manifest and one file."""

    def _make(plugin_id, kind="framework", version="1.0.0", **extra):
        source = workdir / "sources" / plugin_id
        source.mkdir(parents=True, exist_ok=True)
        manifest = {
            "id": plugin_id,
            "type": kind,
            "name": plugin_id.replace("-", " ").title(),
            "version": version,
            **extra,
        }
        (source / "manifest.json").write_text(json.dumps(manifest, indent=2))
        (source / "README.md").write_text(f"# {plugin_id}\n")
        return source

    return _make


@pytest.fixture
def disk_state():
    """Function capturing every file's bytes and every directory below a path."""

    def _capture(path):
        path = Path(path)
        if not path.exists():
            return None
        if path.is_file():
            return path.read_bytes()
        state = {}
        for entry in sorted(path.rglob("*")):
            key = entry.relative_to(path).as_posix()
            state[key] = entry.read_bytes() if entry.is_file() else "<dir>"
        return state

    return _capture
