"""knowledge_rag.config.logging_setup

Process-wide logging configuration from the ``logging`` config section.
"""

import logging
from typing import Any

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(config: Any = None) -> None:
    """Apply ``logging.level`` and ``logging.format`` to the root logger.

    Parameters
    ----------
    config : GlobalConfig or Mapping or None
        Either a loaded configuration (its ``logging`` section is used) or
        the section itself. Missing keys default to ``INFO`` and
        :data:`DEFAULT_LOG_FORMAT`.

    Raises
    ------
    ValueError
        If ``level`` is not a known logging level name.
    """
    section = getattr(config, "logging", config) or {}
    level_name = str(section.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level {level_name!r}")

    logging.basicConfig(
        level=level,
        format=section.get("format", DEFAULT_LOG_FORMAT),
        force=True,
    )


__all__ = ["configure_logging", "DEFAULT_LOG_FORMAT"]
