"""Logging helpers."""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

_LOGGING_CONFIGURED = False
_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"


def configure_logging(level: Union[str, int, None] = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _LOGGING_CONFIGURED
    level = level or os.getenv("RELEASE_DEPLOYER_LOG_LEVEL") or logging.INFO
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(level=level, format=_LOG_FORMAT)
        _LOGGING_CONFIGURED = True
    else:
        logging.getLogger().setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not _LOGGING_CONFIGURED:
        configure_logging()
    return logging.getLogger(name)
