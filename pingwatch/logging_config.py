import logging
import os
import sys


def configure_logging(level=None):
    """Configure root logging for the service.

    Level comes from ``PINGWATCH_LOG_LEVEL`` (default INFO) unless given.
    """
    level_name = (level or os.environ.get("PINGWATCH_LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger(__name__).info("Logging configured: level=%s", logging.getLevelName(log_level))
