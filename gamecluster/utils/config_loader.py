"""
Configuration loader.
Reads environment settings (.env) and the tunable config.json, with hot
reload for the JSON part.
"""

import json
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logger import get_logger

logger = get_logger(__name__)


class AppSettings(BaseSettings):
    """Environment variables"""
    # Store
    database_url: str = "sqlite:///data/game_clusters.db"

    # Trained snapshot
    snapshot_path: str = "models/cluster_snapshot.pkl"

    # Tunables
    config_path: str = "config/config.json"

    # Experiment tracking
    mlflow_tracking_uri: str = "file:./mlruns"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        env_prefix="GAMECLUSTER_",
        extra='ignore'
    )


DEFAULT_CONFIG: Dict[str, Any] = {
    "clustering": {"n_clusters": 12, "random_state": 42},
    "features": {"tag_width": None},
    "export": {"distance_precision": 4},
    "retrieval": {"default_strategy": "range_scan", "max_similar_games": 50},
    "api": {"request_timeout_seconds": 2.0},
    "tracking": {"enabled": True, "experiment": "game-clusters"},
}


class ConfigLoader:
    """Config loader (singleton)"""

    _instance = None
    _config: Optional[Dict[str, Any]] = None
    _config_path: Optional[Path] = None
    _last_loaded: Optional[datetime] = None
    _settings: Optional[AppSettings] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._settings is None:
            self._settings = AppSettings()
            logger.info(f"Settings loaded (database_url={self._settings.database_url})")

    def load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load config.json.

        Args:
            config_path: path to the JSON file (defaults to settings.config_path)

        Returns:
            The config dictionary

        Raises:
            FileNotFoundError: when the file does not exist
            json.JSONDecodeError: when the file is not valid JSON
        """
        self._config_path = Path(config_path or self.settings.config_path)

        if not self._config_path.exists():
            logger.error(f"Config file not found: {self._config_path}")
            raise FileNotFoundError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                self._config = json.load(f)

            self._last_loaded = datetime.now()
            logger.info(f"Config loaded: {self._config_path}")
            logger.info(f"  n_clusters: {self.get('clustering.n_clusters')}")

            return self._config

        except json.JSONDecodeError as e:
            logger.error(f"Config JSON parse failed: {e}")
            raise

    def use_config(self, values: Dict[str, Any]) -> None:
        """Replace the in-memory config without touching the file."""
        self._config = values
        self._config_path = None
        self._last_loaded = datetime.now()

    def reload_if_changed(self) -> bool:
        """
        Reload config.json when it changed on disk.

        Returns:
            True when the file was reloaded
        """
        if self._config_path is None or self._config is None:
            return False

        try:
            file_mtime = datetime.fromtimestamp(self._config_path.stat().st_mtime)

            if file_mtime > self._last_loaded:
                logger.info("Config file changed, reloading")
                self.load_config(str(self._config_path))
                return True

            return False

        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Config reload failed: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value by dotted key, falling back to the built-in defaults.

        Args:
            key: dotted key (e.g. "clustering.n_clusters")
            default: value returned when neither source has the key

        Returns:
            The config value or the default

        Example:
            config.get("retrieval.default_strategy")  # "range_scan"
        """
        for source in (self._config, DEFAULT_CONFIG):
            if source is None:
                continue
            value = source
            for k in key.split('.'):
                if isinstance(value, dict) and k in value:
                    value = value[k]
                else:
                    break
            else:
                if value is not None:
                    return value
        return default

    def get_n_clusters(self) -> int:
        return int(self.get("clustering.n_clusters", 12))

    def get_distance_precision(self) -> int:
        return int(self.get("export.distance_precision", 4))

    def get_default_strategy(self) -> str:
        return self.get("retrieval.default_strategy", "range_scan")

    def get_max_similar_games(self) -> int:
        return int(self.get("retrieval.max_similar_games", 50))

    def get_request_timeout(self) -> float:
        return float(self.get("api.request_timeout_seconds", 2.0))

    @property
    def config(self) -> Dict[str, Any]:
        """The whole config dictionary"""
        return self._config or {}

    @property
    def settings(self) -> AppSettings:
        """Environment settings"""
        if self._settings is None:
            self._settings = AppSettings()
        return self._settings


# Module level singleton
config = ConfigLoader()
