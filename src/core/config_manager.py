import asyncio
import copy
import os
from typing import Any, Dict, Optional

import yaml

from .logging import logger
from ..utils.deep_merge import deep_merge


DEFAULT_CONFIG: Dict[str, Any] = {
    "upstream": {
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
        "headers": {},
        "timeout": {
            "connect": 10.0,
            "read": 60.0,
            "write": 10.0,
            "pool": 10.0
        }
    },
    "relay": {
        "fixed_content": ""
    }
}


class ConfigManager:
    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = config_dir or os.getenv("RELAY_CONFIG_DIR", "config")
        self.config_path = os.path.join(self.config_dir, "relay.yaml")
        self.config = self._load_config()
        self.last_mtime = self._get_mtime()

        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        logger.info(
            "Configuration manager initialized",
            config_dir=self.config_dir,
            log_level=self.log_level,
            config_exists=os.path.exists(self.config_path),
            fixed_content_enabled=bool(self.fixed_content)
        )

    def _load_config(self) -> Dict[str, Any]:
        config = copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise yaml.YAMLError(f"top level of {self.config_path} must be a mapping")
            config = deep_merge(config, loaded)
        except FileNotFoundError:
            logger.warning(
                f"Config file {self.config_path} not found, using defaults",
                config_path=self.config_path
            )
        except yaml.YAMLError as e:
            logger.error(
                f"Error parsing YAML file: {e}",
                config_path=self.config_path,
                error_type="yaml_parse_error"
            )

        if not isinstance(config.get("relay"), dict):
            config["relay"] = {}

        # Переменная окружения имеет приоритет над файлом
        env_fixed_content = os.getenv("FIXED_CONTENT")
        if env_fixed_content is not None:
            config["relay"]["fixed_content"] = env_fixed_content

        config["relay"]["fixed_content"] = self._normalize_fixed_content(config["relay"].get("fixed_content"))
        return config

    def _normalize_fixed_content(self, value: Any) -> str:
        """YAML may hand back numbers or booleans (`fixed_content: 2024`); the relays need text."""
        if value is None or isinstance(value, str):
            return value or ""
        if isinstance(value, (dict, list)):
            logger.error(
                "relay.fixed_content must be a string, ignoring it",
                exc_info=False,
                config_path=self.config_path,
                value_type=type(value).__name__
            )
            return ""
        logger.warning(
            f"relay.fixed_content is a {type(value).__name__}, using its text form",
            config_path=self.config_path
        )
        return str(value)

    def get_config(self) -> Dict[str, Any]:
        return self.config

    @property
    def upstream_config(self) -> Dict[str, Any]:
        return self.config.get("upstream", {})

    @property
    def fixed_content(self) -> str:
        """Текст, добавляемый к каждому ответу"""
        return self.config.get("relay", {}).get("fixed_content") or ""

    def reload_config(self):
        logger.info("Reloading configuration", config_dir=self.config_dir)
        self.config = self._load_config()
        logger.info(
            "Configuration reloaded",
            fixed_content_enabled=bool(self.fixed_content),
            upstream_base_url=self.upstream_config.get("base_url")
        )

    def _get_mtime(self) -> Optional[float]:
        try:
            return os.path.getmtime(self.config_path)
        except FileNotFoundError:
            return None

    def check_for_changes(self) -> bool:
        """Reload when the config file's mtime moved; True if a reload happened."""
        mtime = self._get_mtime()
        if mtime is None or mtime == self.last_mtime:
            return False
        self.last_mtime = mtime
        logger.debug("Configuration file changed, triggering reload", config_path=self.config_path)
        self.reload_config()
        return True

    async def _reload_config_task(self, interval: float = 5.0):
        while True:
            self.check_for_changes()
            await asyncio.sleep(interval)

    def start_reloader_task(self) -> asyncio.Task:
        return asyncio.create_task(self._reload_config_task())
