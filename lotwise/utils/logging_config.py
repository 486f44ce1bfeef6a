"""
Logging Configuration

One structured format for every lotwise module:

    [2026-01-15 09:30:00.123] [INFO    ] [schedule:pause:142] Paused schedule ... {schedule_id=...}

Levels come from LOG_LEVEL; LOTWISE_LOG_FILE adds a file handler to every
logger created afterwards. Extra key/value context is passed through the
standard `extra={'context': {...}}` argument.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """
    Format: [TIMESTAMP] [LEVEL] [MODULE:FUNCTION:LINE] MESSAGE {key=value ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        location = f"{record.module}:{record.funcName}:{record.lineno}"
        message = f"[{timestamp}] [{record.levelname:8s}] [{location}] {record.getMessage()}"

        context = getattr(record, 'context', None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            message += f" {{{pairs}}}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class PerformanceLogger:
    """
    Times a block and logs it: DEBUG normally, WARNING with a SLOW: prefix
    above threshold_ms. The measured duration stays on duration_ms.
    """

    def __init__(self, logger: logging.Logger, operation: str, threshold_ms: float = 1000):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.duration_ms: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self._started) * 1000
        outcome = "failed after" if exc_type is not None else "took"

        if self.duration_ms > self.threshold_ms:
            self.logger.warning(f"SLOW: {self.operation} {outcome} {self.duration_ms:.1f}ms")
        else:
            self.logger.debug(f"{self.operation} {outcome} {self.duration_ms:.1f}ms")
        return False


def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Logger with the structured format on stdout and an optional file.

    Args:
        name: Logger name (usually __name__)
        level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL or INFO
        log_file: File path for logs. Defaults to LOTWISE_LOG_FILE if set

    Returns:
        Configured logger; calling again with the same name returns it unchanged
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level, logging.INFO)
    logger.setLevel(log_level)

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or os.getenv('LOTWISE_LOG_FILE')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_perf_logger(logger: logging.Logger, operation: str, threshold_ms: float = 1000) -> PerformanceLogger:
    """
    Usage:
        with get_perf_logger(logger, "simulate AAPL", threshold_ms=500):
            simulation = simulate(...)
    """
    return PerformanceLogger(logger, operation, threshold_ms)
