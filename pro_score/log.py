"""Logging configuration."""

import logging
import sys

PACKAGE_LOGGER = "pro_score"


class StructuredFormatter(logging.Formatter):
    """key=value formatter for log records."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured data."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "questionnaire"):
            log_data["questionnaire"] = record.questionnaire

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        parts = [f"{k}={v}" for k, v in log_data.items()]
        return " ".join(parts)


def setup_logging(level: str = "WARNING", structured: bool = False) -> logging.Logger:
    """Configure the package logger.

    Only the ``pro_score`` logger is touched so that applications
    embedding the engine keep control of the root logger.

    Args:
        level: Level name (e.g. "DEBUG", "INFO").
        structured: Use key=value output instead of the plain format.

    Returns:
        The configured package logger.
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger
