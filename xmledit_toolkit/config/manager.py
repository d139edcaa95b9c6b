from __future__ import annotations

"""Configuration loading and access helpers.

This module centralises the declarative editing rules (identity attribute,
binary content types, stylesheet location, etc.) and the logging setup.  It
loads YAML files packaged with *xmledit_toolkit* and optionally merges them
with user overrides.

Override directory: ``$XMLEDIT_CONFIG_DIR`` when set, else
``~/.xmledit_toolkit``.

Unlike a process-wide singleton, a :class:`ConfigManager` is constructed
explicitly and handed to whatever needs it.
"""

import importlib.resources as pkg_resources
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

__all__ = ["ConfigManager"]


def _get_user_config_dir() -> Path:
    """Return the directory holding user override files."""
    override = os.environ.get("XMLEDIT_CONFIG_DIR")
    if override:
        return Path(override)
    return Path.home() / ".xmledit_toolkit"


class ConfigManager:
    """Loads and exposes configuration sections as dictionaries."""

    _DEFAULT_FILENAMES = {
        "editor": "editor.yml",
        "logging": "logging.yml",
    }

    def __init__(self, user_config_dir: Optional[Path] = None) -> None:
        self._user_config_dir = Path(user_config_dir) if user_config_dir else _get_user_config_dir()
        self._data: Dict[str, Dict[str, Any]] = {}
        self._ensure_loaded()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    def get_editor_config(self) -> Dict[str, Any]:
        return self._data.get("editor", {})

    def get_logging_config(self) -> Dict[str, Any]:
        return self._data.get("logging", {})

    @property
    def user_config_dir(self) -> Path:
        return self._user_config_dir

    # ------------------------------------------------------------------
    # Internal loading logic
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> None:
        if self._data:
            return

        startup_summary = []

        for key, filename in self._DEFAULT_FILENAMES.items():
            merged_cfg: Dict[str, Any] = {}
            status = "missing"

            # 1. packaged default
            try:
                text = pkg_resources.files(__package__).joinpath(filename).read_text(encoding="utf-8")
                packaged_data = yaml.safe_load(text) or {}
                merged_cfg.update(packaged_data)
                status = "loaded"
            except (FileNotFoundError, OSError):
                logger.error("Missing packaged config for %s (%s)", key, filename)
            except yaml.YAMLError as exc:
                logger.error("Invalid packaged config for %s (%s): %s", key, filename, exc)
                status = "invalid"

            # 2. user overrides
            user_path = self._user_config_dir / filename
            if user_path.is_file():
                try:
                    user_data = yaml.safe_load(user_path.read_text(encoding="utf-8")) or {}
                    if isinstance(user_data, dict):
                        merged_cfg.update(user_data)
                        if status == "loaded":
                            status = "loaded+overrides"
                    else:
                        logger.error("Ignoring user config %s: top level is not a mapping", user_path)
                except (OSError, yaml.YAMLError) as exc:
                    logger.error("Could not parse user config %s: %s", user_path, exc)

            self._data[key] = merged_cfg
            startup_summary.append(f"{key}: {status}")

        logger.info("Config startup: %s", " | ".join(startup_summary))
