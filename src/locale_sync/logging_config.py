"""Logger setup for sync runs: an optional log file plus progress-bar friendly console output."""
import logging
import os
import sys
from logging import Handler

from tqdm import tqdm

# Every module logs below this name via logging.getLogger(__name__).
LOGGER_NAME = "locale_sync"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class TqdmLoggingHandler(Handler):
    """Console handler that prints through tqdm so log lines do not tear the progress bar."""

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=sys.stderr)
            self.flush()
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


def _file_handler(log_file_path: str) -> logging.FileHandler:
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return logging.FileHandler(log_file_path, encoding='utf-8')


def setup_logger(log_level_str: str, log_file_path: str, log_to_console: bool) -> logging.Logger:
    """
    Configure the ``locale_sync`` package logger for one run.

    Calling it again replaces the handlers instead of stacking them. Records are
    not propagated to the root logger.

    Args:
        log_level_str: Level name such as 'INFO' or 'debug'; unknown names mean INFO.
        log_file_path: Log file location, its directory is created if needed.
            An empty value disables file logging.
        log_to_console: Whether to also log to stderr through tqdm.

    Returns:
        The configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level_str.upper(), logging.INFO))
    for old_handler in logger.handlers:
        old_handler.close()
    logger.handlers.clear()
    logger.propagate = False

    handlers = []
    if log_file_path:
        handlers.append(_file_handler(log_file_path))
    if log_to_console:
        handlers.append(TqdmLoggingHandler())

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
