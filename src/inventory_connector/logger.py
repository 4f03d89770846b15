import logging
import sys
from logging.handlers import RotatingFileHandler

from . import settings

LOG_FILENAME = "inventory_connector.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def setup_logger(name: str | None = None, log_level: int | str = settings.LOG_LEVEL) -> logging.Logger:
    """Attach stdout and rotating-file handlers to the connector's logger.

    The file lives at ``LOG_DIR/inventory_connector.log`` (5 MB, three backups).
    Calling it again for an already configured logger only updates the level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return logger

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("%(message)s"))

    settings.LOG_DIR.mkdir(parents=True, exist_ok=True)
    logfile = RotatingFileHandler(
        settings.LOG_DIR / LOG_FILENAME,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    logfile.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    for handler in (console, logfile):
        handler.setLevel(log_level)
        logger.addHandler(handler)
    return logger
