"""
Logging configuration for the permit library.

Applies a dictConfig with console output, optional rotating log files and JSON
formatting via python-json-logger. Every handler redacts secret keys and
stamps records with the request correlation ID.
"""

import copy
import logging
import logging.config
from typing import Optional

LOGGER_NAMESPACE = "ambient_permit"

DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "redact": {
            "()": "ambient_permit.utils.structured_logging.CredentialRedactionFilter"
        },
        "correlation": {
            "()": "ambient_permit.utils.structured_logging.CorrelationIdFilter"
        }
    },
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        },
        "detailed": {
            "format": (
                "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                "[%(correlation_id)s] - %(message)s (%(funcName)s)"
            ),
            "datefmt": "%Y-%m-%d %H:%M:%S"
        },
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(name)s %(levelname)s %(correlation_id)s %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "standard",
            "filters": ["redact", "correlation"],
            "stream": "ext://sys.stdout"
        }
    },
    "loggers": {
        LOGGER_NAMESPACE: {
            "level": "INFO",
            "handlers": ["console"],
            "propagate": False
        }
    },
    "root": {
        "level": "WARNING",
        "handlers": ["console"]
    }
}


def _file_handler(filename: str, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filters": ["redact", "correlation"],
        "filename": filename,
        "maxBytes": 10485760,  # 10MB
        "backupCount": 5
    }


def build_logging_config(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: bool = False
) -> dict:
    """
    Build a dictConfig for the library logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path; errors also go to <name>_errors.log
        json_format: Use JSON formatting

    Returns:
        Config dict for logging.config.dictConfig()
    """
    config = copy.deepcopy(DEFAULT_LOGGING_CONFIG)
    library_logger = config["loggers"][LOGGER_NAMESPACE]

    if level:
        library_logger["level"] = level.upper()
        config["handlers"]["console"]["level"] = level.upper()

    if log_file:
        config["handlers"]["file"] = _file_handler(log_file, "DEBUG")
        error_file = log_file[:-4] + "_errors.log" if log_file.endswith(".log") else log_file + ".errors"
        config["handlers"]["error_file"] = _file_handler(error_file, "ERROR")
        library_logger["handlers"] = ["console", "file", "error_file"]

    if json_format:
        for name in ("console", "file"):
            if name in config["handlers"]:
                config["handlers"][name]["formatter"] = "json"

    return config


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: bool = False
) -> None:
    """
    Setup logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        json_format: Use JSON formatting
    """
    logging.config.dictConfig(build_logging_config(level, log_file, json_format))


def setup_logging_from_settings(settings) -> None:
    """Apply log_level/log_json from PermitSettings."""
    setup_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance under the library namespace.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name == LOGGER_NAMESPACE or name.startswith(LOGGER_NAMESPACE + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
