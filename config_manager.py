"""
Configuration management for the artwork recommendation service.
Handles loading, validating, and providing access to application settings.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Recommendation engine settings."""
    candidate_limit: int
    history_limit: int
    neighbor_limit: int
    neighbor_interaction_limit: int
    branch_timeout_seconds: float
    max_concurrent_queries: int
    default_limit: int
    trending_window: str


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool


@dataclass
class RateLimitConfig:
    """Per-viewer request rate limit settings."""
    max_requests: int
    window_seconds: float


@dataclass
class PathsConfig:
    """Path configuration settings."""
    data_dir: str


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "recommendation_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        self._config = self._get_default_config()

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "engine": {
                "candidate_limit": 100,
                "history_limit": 100,
                "neighbor_limit": 50,
                "neighbor_interaction_limit": 100,
                "branch_timeout_seconds": 2.0,
                "max_concurrent_queries": 4,
                "default_limit": 20,
                "trending_window": "week"
            },
            "app": {
                "host": "0.0.0.0",
                "port": 22582,
                "debug": False
            },
            "rate_limit": {
                "max_requests": 60,
                "window_seconds": 60.0
            },
            "paths": {
                "data_dir": "data"
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        for section, values in file_config.items():
            if section in self._config:
                if isinstance(values, dict):
                    self._config[section].update(values)
                else:
                    self._config[section] = values
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        # Paths
        if os.getenv("RECO_DATA_DIR"):
            self._config["paths"]["data_dir"] = os.getenv("RECO_DATA_DIR")

        # Engine settings
        if os.getenv("RECO_CANDIDATE_LIMIT"):
            self._config["engine"]["candidate_limit"] = int(os.getenv("RECO_CANDIDATE_LIMIT"))

        if os.getenv("RECO_BRANCH_TIMEOUT"):
            self._config["engine"]["branch_timeout_seconds"] = float(os.getenv("RECO_BRANCH_TIMEOUT"))

        if os.getenv("RECO_MAX_CONCURRENT_QUERIES"):
            self._config["engine"]["max_concurrent_queries"] = int(os.getenv("RECO_MAX_CONCURRENT_QUERIES"))

        # Rate limit settings
        if os.getenv("RECO_RATE_LIMIT_MAX_REQUESTS"):
            self._config["rate_limit"]["max_requests"] = int(os.getenv("RECO_RATE_LIMIT_MAX_REQUESTS"))

        if os.getenv("RECO_RATE_LIMIT_WINDOW_SECONDS"):
            self._config["rate_limit"]["window_seconds"] = float(os.getenv("RECO_RATE_LIMIT_WINDOW_SECONDS"))

    def get_engine_config(self) -> EngineConfig:
        """Get recommendation engine configuration."""
        engine_config = self._config["engine"]
        return EngineConfig(
            candidate_limit=engine_config["candidate_limit"],
            history_limit=engine_config["history_limit"],
            neighbor_limit=engine_config["neighbor_limit"],
            neighbor_interaction_limit=engine_config["neighbor_interaction_limit"],
            branch_timeout_seconds=engine_config["branch_timeout_seconds"],
            max_concurrent_queries=engine_config["max_concurrent_queries"],
            default_limit=engine_config["default_limit"],
            trending_window=engine_config["trending_window"]
        )

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"]
        )

    def get_rate_limit_config(self) -> RateLimitConfig:
        """Get rate limit configuration."""
        rl_config = self._config["rate_limit"]
        return RateLimitConfig(
            max_requests=rl_config["max_requests"],
            window_seconds=rl_config["window_seconds"]
        )

    def get_paths_config(self) -> PathsConfig:
        """Get paths configuration."""
        return PathsConfig(data_dir=self._config["paths"]["data_dir"])

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)


# Global configuration instance
config_manager = ConfigManager()


def get_engine_config() -> EngineConfig:
    """Get recommendation engine configuration."""
    return config_manager.get_engine_config()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_rate_limit_config() -> RateLimitConfig:
    """Get rate limit configuration."""
    return config_manager.get_rate_limit_config()


def get_paths_config() -> PathsConfig:
    """Get paths configuration."""
    return config_manager.get_paths_config()


def reload_config() -> None:
    """Reload configuration from file."""
    config_manager.reload()


def save_config() -> None:
    """Save current configuration to file."""
    config_manager.save_config()
