"""Logging configuration shared by the grader and its parallel runners."""

import logging
import os
import sys
from typing import List, Optional

from question_grader import config

_logger: Optional[logging.Logger] = None


class RunnerTagFilter(logging.Filter):
    """Stamps every record with the runner tag so interleaved runner output stays readable."""

    def __init__(self, runner_id: Optional[int]):
        super().__init__()
        self.tag = f"runner{runner_id}" if runner_id else "main"

    def filter(self, record: logging.LogRecord) -> bool:
        record.runner = self.tag
        return True


def _handlers(log_file: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    try:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    except OSError as e:
        # Console logging still works without the file
        logging.getLogger(__name__).warning(f"File logging disabled for {log_file}: {e}")
    return handlers


def setup_logger(runner_id: Optional[int] = config.RUNNER_ID, log_file: str = config.LOG_FILE) -> logging.Logger:
    """Sets up and returns the application logger.

    Output goes to stdout and to ``log_file``; each runner of a parallel
    run writes its own file. The level follows ``config.DEBUG``.

    Returns:
        logging.Logger: The configured application logger.
    """
    global _logger
    if _logger:
        return _logger

    logger = logging.getLogger("QuestionGrader")
    logger.setLevel(config.LOG_LEVEL)
    logger.propagate = False

    # Prevent adding multiple handlers if called again
    if not logger.handlers:
        formatter = logging.Formatter(config.LOG_FORMAT)
        tag = RunnerTagFilter(runner_id)
        for handler in _handlers(log_file):
            handler.setLevel(config.LOG_LEVEL)
            handler.setFormatter(formatter)
            handler.addFilter(tag)
            logger.addHandler(handler)

    _logger = logger
    if config.DEBUG:
        logger.debug(f"Logger initialized in DEBUG mode, writing to {log_file}.")
    else:
        logger.info("Logger initialized.")
    return logger


def get_logger() -> logging.Logger:
    """Returns the singleton logger instance, setting it up if necessary."""
    if _logger is None:
        return setup_logger()
    return _logger
