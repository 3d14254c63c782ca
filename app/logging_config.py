# =============================================================================
# app/logging_config.py - Logging Setup
# =============================================================================
# Every module logs through logging.getLogger(__name__); this module only
# decides the root level and format, once per process.
#
# Usage:
#   from app.logging_config import configure_logging
#   configure_logging()
# =============================================================================

import logging

from app.config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: Settings | None = None) -> int:
    """
    Configure root logging from settings.

    DEBUG=true wins over LOG_LEVEL. Calling this more than once is harmless
    because logging.basicConfig is a no-op once handlers exist.

    Returns:
        The numeric level that was requested
    """
    config = config or default_settings
    level = logging.DEBUG if config.DEBUG else getattr(logging, config.LOG_LEVEL)

    logging.basicConfig(level=level, format=LOG_FORMAT)
    return level
