"""Configuration files (YAML) and helpers.

`ConfigManager` reads the default files from this folder and merges them with
user overrides; `EditorSettings` is the typed view consumed by the core.
"""

from .manager import ConfigManager
from .settings import EditorSettings

__all__ = [
    "ConfigManager",
    "EditorSettings",
]
