import logging
import os

LOGGER_NAME = "video_backend"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ColorFormatter(logging.Formatter):
    """Tints the level name of video_backend records (upload, reassembly, probe) for a terminal."""
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record):
        levelname = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logging(level: str | None = None) -> logging.Logger:
    """Attach a single colored stream handler to the package logger.

    Every module logs through ``logging.getLogger(__name__)`` so records
    from ``video_backend.*`` end up here. Calling this twice does not add a
    second handler.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ColorFormatter(LOG_FORMAT))
        logger.addHandler(handler)

    for h in logger.handlers:
        h.setLevel(log_level)

    return logger
