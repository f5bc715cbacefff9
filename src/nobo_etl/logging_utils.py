from __future__ import annotations

import logging
import os
from typing import Optional

from .config_loader import PipelineConfig

LOG_LEVEL_ENV = "NOBO_ETL_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _level_value(name: str) -> int:
    normalized = name.strip().upper()
    if normalized.isdigit():
        return int(normalized)
    level = logging.getLevelName(normalized)
    # getLevelName returns "Level X" for names it does not know
    return level if isinstance(level, int) else logging.WARNING


def resolve_log_level(config: PipelineConfig, level_override: Optional[str] = None) -> int:
    """
    Pick the effective level: ``NOBO_ETL_LOG_LEVEL``, then the ``--log-level``
    flag, then ``logging.level`` from the YAML config, then ``WARNING``.
    """
    for candidate in (os.getenv(LOG_LEVEL_ENV), level_override, config.logging.level):
        if candidate and candidate.strip():
            return _level_value(candidate)
    return logging.WARNING


def configure_logging(config: PipelineConfig, level_override: Optional[str] = None) -> int:
    level = resolve_log_level(config, level_override)
    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    return level
