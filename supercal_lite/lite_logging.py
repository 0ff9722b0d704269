"""
Central logging configuration for supercal_lite.

Keeps supercal_lite modules at INFO (or DEBUG when troubleshooting) while
holding chatty third-party libraries at WARNING.
"""

import logging
import os
from typing import Optional

DEBUG_ENV = "SUPERCAL_DEBUG"
LOG_LEVEL_ENV = "SUPERCAL_LOG_LEVEL"

# Third-party loggers kept quiet outside reset_logging_to_debug()
SUPPRESSED_LOGGERS = (
    "icalendar",
    "yaml",
)

LITE_MODULES = (
    "supercal_lite",
    "supercal_lite.config_loader",
    "supercal_lite.lite_datetime_utils",
    "supercal_lite.lite_ics_encoder",
    "supercal_lite.lite_ics_parser",
    "supercal_lite.lite_models",
    "supercal_lite.lite_recurrence_expander",
    "supercal_lite.lite_snapshot",
)


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for supercal_lite.

    Args:
        debug_mode: Whether to enable debug logging for supercal_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        SUPERCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        SUPERCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv(DEBUG_ENV, "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv(LOG_LEVEL_ENV, "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    # Don't use basicConfig(force=True); it would drop the colorlog handler from __init__
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {name: logging.WARNING for name in SUPPRESSED_LOGGERS}

    lite_level = logging.DEBUG if final_debug else logging.INFO
    for module in LITE_MODULES:
        logger_config[module] = lite_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info(
            "Debug logging enabled for supercal_lite modules. Third-party debug logs suppressed."
        )
    else:
        root_logger.info("Production logging configuration applied.")


def reset_logging_to_debug() -> None:
    """
    Reset all loggers to DEBUG level for troubleshooting.
    """
    logging.getLogger().setLevel(logging.DEBUG)

    for logger_name in SUPPRESSED_LOGGERS + LITE_MODULES:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)

    logging.getLogger().info("All loggers reset to DEBUG level for troubleshooting")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ("supercal_lite", *SUPPRESSED_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
