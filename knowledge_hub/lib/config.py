"""Configuration loader for registries, catalogs and environment variables."""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from knowledge_hub.models.catalog import Agent, AgentRegistry, Catalog, CatalogEntry

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 9100,
        "reload": False,
    },
    "cors": {
        "enabled": True,
        "allow_origins": ["*"],
        "allow_methods": ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization", "X-User-Id"],
    },
    "index": {
        "content_token_limit": 1000,
    },
    "cache": {
        "capacity": 10,
    },
    "agents": [],
    "knowledge_slugs": {},
}


class ConfigLoader:
    """Loads ``knowledge.yaml`` and environment settings."""

    def __init__(self, config_dir: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_dir: Directory containing knowledge.yaml (default: $KNOWLEDGE_CONFIG_DIR or ./config)
            env_file: Path to .env file (default: ./.env)
        """
        self.env_file = Path(env_file or ".env")
        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment from {self.env_file}")
        else:
            logger.debug(f"Environment file not found: {self.env_file}")

        self.config_dir = Path(config_dir or os.getenv("KNOWLEDGE_CONFIG_DIR", "config"))
        self.config = self._load_config()
        self.env = self._load_env_vars()

    def _load_config(self) -> dict[str, Any]:
        config_file = self.config_dir / "knowledge.yaml"
        config = copy.deepcopy(DEFAULTS)

        if not config_file.exists():
            logger.warning(f"Knowledge config not found: {config_file}, using defaults")
            return config

        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

        for key, value in data.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key] = {**config[key], **value}
            else:
                config[key] = value

        logger.info(f"Loaded knowledge configuration from {config_file}")
        return config

    def _load_env_vars(self) -> dict[str, Any]:
        return {
            "db_path": os.getenv("KNOWLEDGE_DB_PATH", "./data/knowledge.db"),
            "store": os.getenv("KNOWLEDGE_STORE", "sqlite"),
            "user_id": os.getenv("KNOWLEDGE_USER_ID", "current-user"),
            "log_level": os.getenv("KNOWLEDGE_LOG_LEVEL", "INFO"),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dotted key, e.g. ``server.port``."""
        value: Any = self.config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def get_env(self, key: str, default: Any = None) -> Any:
        return self.env.get(key, default)

    def agent_registry(self) -> AgentRegistry:
        agents = [Agent.from_dict(a) for a in self.config.get("agents") or []]
        logger.info(f"Loaded {len(agents)} agents")
        return AgentRegistry(agents)

    def catalog(self) -> Catalog:
        def entries(key: str) -> list[CatalogEntry] | None:
            raw = self.config.get(key)
            return None if raw is None else [CatalogEntry.from_dict(e) for e in raw]

        return Catalog(
            skills=entries("skills"),
            tools=entries("tools"),
            system_entries=entries("system_entries"),
        )

    def knowledge_slugs(self) -> dict[str, str]:
        return {str(k): str(v) for k, v in (self.config.get("knowledge_slugs") or {}).items()}
