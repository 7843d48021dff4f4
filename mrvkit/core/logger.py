"""
Module for centralized, configurable logging across mrvkit packages.
"""

import logging
import os
import json
from datetime import datetime, timezone

# Attributes present on every LogRecord; anything else came in through ``extra``.
_RESERVED_ATTRS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records in JSON format with keys:
    timestamp (in ISO8601 with UTC timezone), level, name, message.

    Values passed through ``extra=`` (e.g. ``project_id``) are added as
    additional top-level keys.
    """

    def format(self, record):
        record_dict = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                record_dict[key] = value
        return json.dumps(record_dict, default=str)


class Logger:
    """
    Central logging setup for all modules.
    """

    _configured = False
    ENV_LEVEL = "MRVKIT_LOG_LEVEL"
    ENV_FMT = "MRVKIT_LOG_FMT"

    @staticmethod
    def setup(
        level: int | None = None,
        fmt: str | None = None,
        datefmt: str = "%Y-%m-%d %H:%M:%S",
    ) -> None:
        """
        Configure the logging system once per process.

        ``level`` falls back to ``MRVKIT_LOG_LEVEL`` and ``fmt`` to
        ``MRVKIT_LOG_FMT``; ``fmt="json"`` switches to structured output.
        """
        if Logger._configured:
            return
        if level is None:
            env_level = os.getenv(Logger.ENV_LEVEL, "INFO").upper()
            effective_level = getattr(logging, env_level, logging.INFO)
        else:
            effective_level = level

        fmt_mode = fmt if fmt is not None else os.getenv(Logger.ENV_FMT, "")
        default_fmt = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
        root = logging.getLogger()
        # Clear handlers so repeated setup never duplicates output
        root.handlers.clear()

        if fmt_mode.lower() == "json":
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter(datefmt=datefmt))
            root.addHandler(handler)
            root.setLevel(effective_level)
        else:
            logging.basicConfig(
                level=effective_level,
                format=fmt_mode or default_fmt,
                datefmt=datefmt,
            )
        Logger._configured = True

    @staticmethod
    def get_logger(
        name: str = "mrvkit", *, level: int | None = None, fmt: str | None = None
    ) -> logging.Logger:
        """
        Get a logger with the specified name.

        Parameters:
            name: The name of the logger.
            level: Optional logging level to set up.
            fmt: Optional format string for log messages.

        Returns:
            logging.Logger: The configured logger instance.
        """
        Logger.setup(level=level, fmt=fmt)
        return logging.getLogger(name)
