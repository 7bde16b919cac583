"""
Configuration management for gitwalk.

Settings come from an optional JSON file merged over defaults, with
environment variable fallbacks for the store connection.
"""

import os
import json
import copy
from pathlib import Path
from typing import Optional, Dict, Any

DEFAULT_CONFIG_FILE = "gitwalk.json"

DEFAULT_CONFIG = {
    "store": {
        "backend": "sqlite",
        "sqlite_path": "gitwalk.db",
    },
    "neo4j": {
        "uri": "bolt://localhost:7687",
        "user": "neo4j",
        "password": "password",
    },
    "walk": {
        "ignore_dirs": [],
        "continue_on_error": False,
    },
    "logging": {
        "level": "INFO",
        "echo_writes": True,
    },
}

STORE_BACKENDS = ("sqlite", "memory", "neo4j")


class Config:
    """Manages gitwalk configuration loaded from a JSON file."""

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize config.

        Args:
            config_file: Path to the JSON config file (defaults to ./gitwalk.json)
        """
        self.config_file = Path(config_file) if config_file else Path.cwd() / DEFAULT_CONFIG_FILE

    def exists(self) -> bool:
        """Check if the config file exists."""
        return self.config_file.exists()

    def load(self) -> Dict[str, Any]:
        """Load config from file, or return defaults if not exists."""
        if not self.exists():
            return copy.deepcopy(DEFAULT_CONFIG)

        try:
            with open(self.config_file, "r") as f:
                config = json.load(f)
                return self._merge_defaults(config)
        except (json.JSONDecodeError, IOError) as e:
            raise RuntimeError(f"Failed to load config from {self.config_file}: {e}")

    def _merge_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Merge user config with defaults."""
        return self._deep_merge_dicts(copy.deepcopy(DEFAULT_CONFIG), config)

    def _deep_merge_dicts(self, base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge nested dictionaries."""
        for key, value in overrides.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                base[key] = self._deep_merge_dicts(base[key], value)
            else:
                base[key] = value
        return base

    def get_store_config(self) -> Dict[str, str]:
        """Get fact store selection, with env var fallbacks."""
        store = self.load()["store"]
        backend = os.getenv("GITWALK_STORE", store["backend"])
        if backend not in STORE_BACKENDS:
            raise RuntimeError(
                f"Unknown store backend {backend!r}; expected one of {', '.join(STORE_BACKENDS)}"
            )
        return {
            "backend": backend,
            "sqlite_path": os.getenv("GITWALK_DB", store["sqlite_path"]),
        }

    def get_neo4j_config(self) -> Dict[str, str]:
        """Get Neo4j connection config, with env var fallbacks."""
        neo4j = self.load()["neo4j"]
        return {
            "uri": os.getenv("NEO4J_URI", neo4j["uri"]),
            "user": os.getenv("NEO4J_USER", neo4j["user"]),
            "password": os.getenv("NEO4J_PASSWORD", neo4j["password"]),
        }

    def get_walk_config(self) -> Dict[str, Any]:
        """Get directory traversal configuration."""
        return self.load()["walk"]

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration, with env var fallback for the level."""
        logging_cfg = self.load()["logging"]
        return {
            "level": os.getenv("GITWALK_LOG_LEVEL", logging_cfg["level"]).upper(),
            "echo_writes": bool(logging_cfg["echo_writes"]),
        }
