"""
Logging setup for the analysis service.

Levels come from settings (environment):
- LOG_LEVEL: level of the root logger (default: INFO)
- LOG_FORMAT: "structured" or "simple" (default: structured)
- LOG_LEVEL_<AREA>: override for one area, e.g. LOG_LEVEL_UPLOAD=DEBUG
  to trace the resumable upload without flooding the rest of the run
"""

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from analyst.config import Settings


# Area name (settings suffix) -> logger it controls
MODULE_LOGGERS = {
    "gemini_client": "analyst.services.ai_clients.gemini_client",
    "pipeline": "analyst.services.pipeline",
    "upload": "analyst.services.upload_transport",
    "inference": "analyst.services.inference_executor",
}

# Third-party loggers held at WARNING; httpx logs every poll request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

# Prefix -> short form shown in the logger column
SHORT_PREFIXES = (
    ("analyst.services.", ""),
    ("analyst.api.", "api."),
    ("analyst.", ""),
)

SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _short_name(name: str) -> str:
    for prefix, replacement in SHORT_PREFIXES:
        if name.startswith(prefix):
            return replacement + name[len(prefix):]
    return name


class StructuredFormatter(logging.Formatter):
    """
    One line per record, columns separated by pipes.

    Format: timestamp | level | logger | message

    Example:
        2025-01-20 14:03:11 | INFO     | upload_transport     | Uploaded derby.mp4 as files/abc in 41.2s
    """

    def format(self, record: logging.LogRecord) -> str:
        line = " | ".join((
            self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            f"{record.levelname:8}",
            f"{_short_name(record.name):20}",
            record.getMessage(),
        ))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _parse_level(value: str | None, default: int) -> int:
    if not value:
        return default
    return getattr(logging, value.upper(), default)


def setup_logging(settings: "Settings") -> None:
    """
    Install a single stdout handler on the root logger.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        settings: Application settings with log configuration
    """
    root_level = _parse_level(settings.log_level, logging.INFO)

    if settings.log_format == "structured":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(SIMPLE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(root_level)

    for area, logger_name in MODULE_LOGGERS.items():
        override = getattr(settings, f"log_level_{area}", None)
        if override:
            logging.getLogger(logger_name).setLevel(_parse_level(override, root_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
