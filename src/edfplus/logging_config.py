"""
Logging setup for the edfplus command line.

Library modules only create module loggers. Applications (and the CLI) call
setup_logging() once to attach a stderr console handler and, unless the
[logging] table disables it, a rotating edfplus.log file.
"""

import logging
import logging.config
import sys

from typing import Any

from edfplus.config import LoggingSettings, get_logging_settings
from edfplus.constants import DEFAULT_LOG_FILE

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_logging_configured = False


def _console_level(verbose: bool, quiet: bool) -> str:
    if verbose:
        return "DEBUG"
    return "WARNING" if quiet else "INFO"


def _file_handler(settings: LoggingSettings) -> dict[str, Any]:
    """Rotating file handler entry; creates the log directory."""
    log_dir = settings.log_dir.expanduser()
    log_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": settings.level,
        "formatter": "file",
        "filename": str(log_dir / DEFAULT_LOG_FILE),
        "maxBytes": int(settings.max_size_mb * 1024 * 1024),
        "backupCount": settings.backup_count,
        "encoding": "utf-8",
    }


def build_logging_config(
    settings: LoggingSettings,
    *,
    verbose: bool = False,
    quiet: bool = False,
    console_format: str | None = None,
) -> dict[str, Any]:
    """
    Build the dictConfig configuration dictionary.

    Args:
        settings: Validated [logging] table
        verbose: Console shows DEBUG messages
        quiet: Console shows only warnings and errors (verbose wins)
        console_format: Console format string (default: same as the log file)

    Returns:
        Dictionary suitable for logging.config.dictConfig()
    """
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": _console_level(verbose, quiet),
            "formatter": "console",
            "stream": "ext://sys.stderr",
        },
    }
    if settings.enabled:
        handlers["file"] = _file_handler(settings)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": console_format or FILE_FORMAT},
            "file": {"format": FILE_FORMAT},
        },
        "handlers": handlers,
        "root": {"level": "DEBUG", "handlers": list(handlers)},
    }


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    console_format: str | None = None,
    settings: LoggingSettings | None = None,
) -> None:
    """
    Configure logging once per process.

    If the log file cannot be opened, logging continues on the console only.

    Args:
        verbose: Console shows DEBUG messages
        quiet: Console shows only warnings and errors
        console_format: Console format string
        settings: Log file settings (default: read from the config file)
    """
    global _logging_configured

    if _logging_configured:
        return

    settings = settings or get_logging_settings()
    options = {"verbose": verbose, "quiet": quiet, "console_format": console_format}
    try:
        logging.config.dictConfig(build_logging_config(settings, **options))
    except (OSError, ValueError) as e:
        sys.stderr.write(f"WARNING: Log file disabled: {e}\n")
        console_only = settings.model_copy(update={"enabled": False})
        logging.config.dictConfig(build_logging_config(console_only, **options))

    _logging_configured = True
