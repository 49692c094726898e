import logging
import sys

LOGGER_NAME = "spotify_radar.cli"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging once and return the CLI logger."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # httpx logs every request at INFO, including full URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger(LOGGER_NAME)


def log_info(message: str) -> None:
    logging.getLogger(LOGGER_NAME).info(message)


def log_success(message: str) -> None:
    logging.getLogger(LOGGER_NAME).info(f"✅ {message}")


def log_warning(message: str) -> None:
    logging.getLogger(LOGGER_NAME).warning(message)


def log_error(message: str) -> None:
    logging.getLogger(LOGGER_NAME).error(message)
