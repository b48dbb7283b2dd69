import logging
import os
import sys
from typing import Optional


class BinaryPayloadFilter(logging.Filter):
    """Filter to keep raw file content out of log records."""

    BINARY_TYPES = (bytes, bytearray, memoryview)

    def filter(self, record: logging.LogRecord) -> bool:
        """Replace binary arguments with a size placeholder."""
        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._describe(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._describe(arg) for arg in record.args)

        return True

    def _describe(self, value):
        if isinstance(value, self.BINARY_TYPES):
            return f"<{len(value)} bytes>"
        return value


def setup_logging(
    component_name: str = 'fdfs_storage',
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging configuration for the client.

    Args:
        component_name: Logger name to configure (the package logger by default)
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    handler.addFilter(BinaryPayloadFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
