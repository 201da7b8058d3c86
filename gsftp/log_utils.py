"""Logger setup. Records go to stderr; stdout carries file data."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, TextIO

LOGGER_NAME = "gsftp"


def _reset(logger: logging.Logger, handlers: List[logging.Handler]) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False


def setup_logger(log_file: Optional[str] = None, level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handlers: List[logging.Handler] = []

    sh = logging.StreamHandler(stream if stream is not None else sys.stderr)
    sh.setFormatter(fmt)
    handlers.append(sh)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(fmt)
        handlers.append(fh)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    _reset(logger, handlers)

    # transport chatter only in verbose mode
    paramiko_logger = logging.getLogger("paramiko")
    paramiko_logger.setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)
    _reset(paramiko_logger, handlers)
    return logger


__all__ = ["LOGGER_NAME", "setup_logger"]
