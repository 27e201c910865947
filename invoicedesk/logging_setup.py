import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from invoicedesk.env import RuntimeConfig


_LOG_FILE_NAME = "invoicedesk.log"
_MAX_LOG_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 5
_NOISY_LOGGERS = ("sqlalchemy.engine", "reportlab")


def setup_logging(config: Optional[RuntimeConfig] = None) -> None:
    config = config or RuntimeConfig.from_env()
    log_level = logging.DEBUG if config.debug else logging.INFO
    root_logger = logging.getLogger()
    if getattr(root_logger, "_invoicedesk_logging_configured", False):
        root_logger.setLevel(log_level)
        for handler in root_logger.handlers:
            handler.setLevel(log_level)
        return

    log_dir = config.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        log_dir / _LOG_FILE_NAME,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_BACKUP_COUNT,
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    root_logger.addHandler(stream_handler)
    root_logger.addHandler(file_handler)
    root_logger._invoicedesk_logging_configured = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if config.debug else logging.WARNING)
