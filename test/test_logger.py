import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from inventory_connector import logger as connector_logger


def test_setup_logger_attaches_console_and_rotating_file(tmp_path):
    with patch.object(connector_logger.settings, "LOG_DIR", tmp_path / "logs"):
        log = connector_logger.setup_logger("inventory_connector.test_setup", "INFO")
        again = connector_logger.setup_logger("inventory_connector.test_setup", "DEBUG")
    try:
        assert again is log
        assert len(log.handlers) == 2
        rotating = [h for h in log.handlers if isinstance(h, RotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == connector_logger.MAX_LOG_BYTES
        assert rotating[0].backupCount == connector_logger.LOG_BACKUPS
        assert all(h.level == logging.DEBUG for h in log.handlers)
        assert (tmp_path / "logs" / connector_logger.LOG_FILENAME).exists()
    finally:
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)
