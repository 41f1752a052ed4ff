"""
Logging utilities.
Every component logs through the same formatter so training runs and API
requests end up in one consistent log stream.
"""

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from datetime import datetime
from typing import Optional


class LoggerSetup:
    """Builds and caches configured loggers"""

    _loggers = {}

    @classmethod
    def get_logger(
        cls,
        name: str,
        log_level: Optional[str] = None,
        log_dir: Optional[str] = None,
        log_file: Optional[str] = None
    ) -> logging.Logger:
        """
        Return a configured logger instance.

        Args:
            name: logger name (usually the module's __name__)
            log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
                (defaults to the GAMECLUSTER_LOG_LEVEL env var, then INFO)
            log_dir: directory for the rotating log file
                (defaults to the GAMECLUSTER_LOG_DIR env var, then "logs")
            log_file: log file name (date based when None)

        Returns:
            Configured Logger
        """
        if name in cls._loggers:
            return cls._loggers[name]

        log_level = log_level or os.getenv("GAMECLUSTER_LOG_LEVEL", "INFO")
        log_dir = log_dir or os.getenv("GAMECLUSTER_LOG_DIR", "logs")

        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, log_level.upper()))

        if logger.handlers:
            return logger

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        if log_file is None:
            log_file = f"gamecluster_{datetime.now().strftime('%Y%m%d')}.log"

        file_handler = RotatingFileHandler(
            filename=log_path / log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        cls._loggers[name] = logger

        return logger


def get_logger(name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Shortcut for LoggerSetup.get_logger

    Usage:
        from gamecluster.utils.logger import get_logger
        logger = get_logger(__name__)
        logger.info("This is an info message")
    """
    return LoggerSetup.get_logger(name, log_level)


def log_banner(logger: logging.Logger, title: str, width: int = 60) -> None:
    """Log a section title between two separator lines."""
    logger.info("=" * width)
    logger.info(title)
    logger.info("=" * width)
