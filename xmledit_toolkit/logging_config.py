from __future__ import annotations

"""Logging set-up for hosts embedding the editing core.

:func:`setup_logging` applies the ``logging.yml`` dictConfig shipped with
the package (merged with user overrides) and writes the file log under
``$XMLEDIT_LOG_DIR``.  ``$XMLEDIT_DEBUG_MODULES`` lists loggers to lower to
DEBUG, e.g. ``xmledit_toolkit.core.document,xmledit_toolkit.core.schema``.
"""

import logging
import logging.config
import os
from typing import Any, Dict, List, Optional

from xmledit_toolkit.config import ConfigManager

__all__ = ["setup_logging"]

LOG_FILE_NAME = "editor.log"
_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_CONSOLE_ONLY: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"plain": {"format": _FORMAT}},
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain", "level": "INFO"},
    },
    "root": {"level": "INFO", "handlers": ["console"]},
}


def setup_logging(config_manager: Optional[ConfigManager] = None) -> None:
    """Configure logging from the ``logging`` configuration section.

    A missing or rejected configuration falls back to INFO on the console.
    """
    log_dir = os.environ.get("XMLEDIT_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    try:
        config = (config_manager or ConfigManager()).get_logging_config()
        if not isinstance(config, dict) or not config.get("version"):
            raise ValueError("logging configuration has no 'version' key")
        file_handler = config.get("handlers", {}).get("file")
        if file_handler is not None:
            file_handler["filename"] = os.path.join(log_dir, LOG_FILE_NAME)
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as exc:
        # dictConfig reports bad configurations through these types
        logging.config.dictConfig(_CONSOLE_ONLY)
        logging.getLogger(__name__).error("Logging: configuration rejected, console only (%s)", exc)
    else:
        logging.getLogger(__name__).info("Logging: configured, file log in %s", log_dir)

    for name in _debug_modules():
        _enable_debug(name)


def _debug_modules() -> List[str]:
    value = os.environ.get("XMLEDIT_DEBUG_MODULES", "")
    return [name.strip() for name in value.split(",") if name.strip()]


def _enable_debug(name: str) -> None:
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    # Handlers inherited through propagation may filter DEBUG out
    if not any(handler.level <= logging.DEBUG for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    logger.debug("Logging: DEBUG enabled for %s", name)
