"""Simple logging configuration for lp-analytics."""

import logging
import os
import sys

# Define TRACE level (lower than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

NOISY_LOGGERS = ("urllib3", "backoff")


class ColoredFormatter(logging.Formatter):
    """Colored log formatter using ANSI escape codes."""

    COLORS = {
        "TRACE": "\033[90m",  # Dark gray
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
            )

        result = super().format(record)

        record.levelname = levelname

        return result


def setup_logging(log_level: str | None = None) -> None:
    """Configure logging for the application.

    Uses ``log_level`` when given, otherwise the LOG_LEVEL environment
    variable (defaults to INFO). Logs go to stderr so JSON output on stdout
    stays machine readable.

    At DEBUG the urllib3 and backoff loggers are held at WARNING; use
    TRACE to see every HTTP retry and connection message.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = TRACE if level_name == "TRACE" else getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    formatter = ColoredFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )

    if level_name == "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    elif level_name == "TRACE":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(TRACE)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Usually __name__ of the calling module

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
