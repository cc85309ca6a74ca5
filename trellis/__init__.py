"""
Trellis - Local package manager for frameworks, add-ons and extensions.

This is the main package that exports the public API for Trellis.
"""

__version__ = "0.1.0"

from trellis.config import load_settings
from trellis.plugin.manager import PluginManager

__all__ = [
    "__version__",
    "PluginManager",
    "load_settings",
]
