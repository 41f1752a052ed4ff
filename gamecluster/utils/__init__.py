"""
Utils package
Shared logging, configuration and database helpers.
"""

from .logger import get_logger, log_banner
from .config_loader import config, ConfigLoader, AppSettings
from .database import build_engine, init_db, Base, engine, SessionLocal

__all__ = [
    "get_logger",
    "log_banner",
    "config",
    "ConfigLoader",
    "AppSettings",
    "build_engine",
    "init_db",
    "Base",
    "engine",
    "SessionLocal",
]
