"""Mini README: Application-wide logging helpers for SkySurvey.

Structure:
    * get_logger - factory returning module loggers with baseline configuration.
    * configure_root_logger - one-shot root logger setup; later calls re-level
      the root and the per-logger overrides without adding handlers.

Usage:
    Modules import ``get_logger`` and keep a module-level ``LOGGER``. The
    simulation engine logs per-tick detail at DEBUG, so production runs stay
    quiet while mission lifecycle events remain visible at INFO. To watch
    the ticks of one subsystem only, pass an override such as
    ``{"skysurvey.simulation.engine": "DEBUG"}`` (``SKYSURVEY_LOG_OVERRIDES``
    in the environment).
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

Level = Union[int, str]

_LOGGER_INITIALISED = False


def configure_root_logger(
    level: Level = logging.INFO, overrides: Optional[Mapping[str, Level]] = None
) -> None:
    """Configure the root logger once, then apply ``level`` and ``overrides``."""

    global _LOGGER_INITIALISED
    root_logger = logging.getLogger()
    if not _LOGGER_INITIALISED:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(handler)
        _LOGGER_INITIALISED = True

    root_logger.setLevel(level)
    for name, logger_level in (overrides or {}).items():
        logging.getLogger(name).setLevel(logger_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-specific logger ensuring baseline configuration."""

    if not _LOGGER_INITIALISED:
        configure_root_logger()
    return logging.getLogger(name)
