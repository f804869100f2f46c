import json
import logging
from logging.config import dictConfig
from typing import Any, Dict

# --------------------------------------------------------------------------- #
# Logging configuration
# --------------------------------------------------------------------------- #
LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        # Human-readable formatter
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        # Machine-readable / structured (JSON) formatter
        "json": {
            "format": (
                '{"timestamp": "%(asctime)s", '
                '"logger": "%(name)s", '
                '"level": "%(levelname)s", '
                '"message": %(message)s}'
            )
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            # Change to `"json"` if you prefer JSON on stderr by default
            "formatter": "default",
        },
    },
    "loggers": {
        # Library-wide root logger
        "jsassist": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}

dictConfig(LOGGING_CONFIG)

_logger: logging.Logger = logging.getLogger("jsassist")


class AssistLogger:
    """
    Class-based structured logging interface for the ``jsassist`` library.

    Every call takes an event name plus arbitrary keyword data which is
    serialised as a JSON payload::

        logger.debug("Static cache rebuilt", symbols=12)
    """
    _logger: logging.Logger = _logger

    # ------------------------------------------------------------------ #
    # Standard logging wrappers
    # ------------------------------------------------------------------ #
    @classmethod
    def debug(cls, event_type: str, **data: Any) -> None:
        cls._log_event(event_type, level=logging.DEBUG, **data)

    @classmethod
    def info(cls, event_type: str, **data: Any) -> None:
        cls._log_event(event_type, level=logging.INFO, **data)

    @classmethod
    def warning(cls, event_type: str, **data: Any) -> None:
        cls._log_event(event_type, level=logging.WARNING, **data)

    @classmethod
    def error(cls, event_type: str, **data: Any) -> None:
        cls._log_event(event_type, level=logging.ERROR, **data)

    @classmethod
    def critical(cls, event_type: str, **data: Any) -> None:
        cls._log_event(event_type, level=logging.CRITICAL, **data)

    @classmethod
    def set_level(cls, level: int | str) -> None:
        cls._logger.setLevel(level)

    # ------------------------------------------------------------------ #
    # Structured event logging
    # ------------------------------------------------------------------ #
    @classmethod
    def _log_event(
        cls,
        event_type: str,
        *,
        level: int = logging.INFO,
        log: logging.Logger | None = None,
        **data: Any,
    ) -> None:
        target = log or cls._logger
        if not target.isEnabledFor(level):
            return
        payload: Dict[str, Any] = {"event": event_type}
        if data:
            payload["data"] = data
        target.log(level, json.dumps(payload, default=str))


# --------------------------------------------------------------------------- #
# Public logger instance
# --------------------------------------------------------------------------- #
logger = AssistLogger
