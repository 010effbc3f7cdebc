"""Configuration management for SubScout."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError, ErrorCodes

DEFAULT_MAX_REQUESTS = 10
DEFAULT_TIME_WINDOW_MS = 180_000
DEFAULT_CACHE_FRESHNESS_MS = 86_400_000
DEFAULT_ADAPTER_TIMEOUT_MS = 15_000
DEFAULT_USER_AGENT = "SubScout/1.0"

DEFAULT_SOURCES: Dict[str, Dict[str, Any]] = {
    "crtsh": {
        "enabled": True,
        "url": "https://crt.sh/?q=%25.{domain}&output=json",
    },
    "alienvault_otx": {
        "enabled": True,
        "url": "https://otx.alienvault.com/api/v1/indicators/domain/{domain}/passive_dns",
    },
}


class Config:
    """Configuration manager that loads settings from YAML and environment variables."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        env_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize configuration.

        An explicit ``config_path`` must exist, and relative paths inside it
        (cache directory, log file) and its ``.env`` resolve against the
        file's own directory. Without one, ``config.yaml`` and ``.env`` in
        the current working directory are used if present and built-in
        defaults apply otherwise.

        Args:
            config_path: Path to config.yaml file
            env_path: Path to .env file
            overrides: Settings merged over the file contents
        """
        if config_path:
            self.config_path: Optional[Path] = Path(config_path).resolve()
            if not self.config_path.exists():
                raise ConfigError(ErrorCodes.CONFIG_MISSING, details=str(self.config_path))
            self.base_dir = self.config_path.parent
        else:
            self.base_dir = Path.cwd()
            default_path = self.base_dir / "config.yaml"
            self.config_path = default_path if default_path.exists() else None

        if env_path:
            load_dotenv(env_path)
        else:
            env_file = self.base_dir / ".env"
            if env_file.exists():
                load_dotenv(env_file)

        self._overrides = overrides or {}
        self._config = self._load_config()
        self._api_keys = self._load_api_keys()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and apply overrides."""
        data: Dict[str, Any] = {}
        if self.config_path is not None:
            with open(self.config_path, "r", encoding="utf-8") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(details=f"{self.config_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(details=f"{self.config_path}: top level must be a mapping")
        return _deep_merge(data, self._overrides)

    def _load_api_keys(self) -> Dict[str, str]:
        """Load API keys from environment variables."""
        return {
            "otx": os.getenv("OTX_KEY", ""),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'sources.crtsh.enabled')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config

        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split(".")
        target = self._config
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = value

    def get_api_key(self, service: str) -> str:
        """Get API key for a service."""
        return self._api_keys.get(service, "")

    def has_api_key(self, service: str) -> bool:
        """Check if API key is configured for a service."""
        key = self._api_keys.get(service, "")
        return bool(key and key.strip())

    @property
    def max_requests(self) -> int:
        return int(self.get("rate_limit.max_requests", DEFAULT_MAX_REQUESTS))

    @property
    def time_window_ms(self) -> int:
        return int(self.get("rate_limit.time_window_ms", DEFAULT_TIME_WINDOW_MS))

    @property
    def cache_freshness_ms(self) -> int:
        return int(self.get("cache.freshness_ms", DEFAULT_CACHE_FRESHNESS_MS))

    @property
    def cache_total_failures(self) -> bool:
        """Whether to cache the empty result of a query on which every source failed."""
        return bool(self.get("cache.cache_total_failures", False))

    @property
    def cache_backend(self) -> str:
        return str(self.get("cache.backend", "file")).lower()

    @property
    def cache_dir(self) -> Path:
        """Get cache directory path (created on demand by the backend)."""
        path = Path(self.get("cache.directory", "./tmp/subdomain_cache"))
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    @property
    def adapter_timeout_ms(self) -> int:
        return int(self.get("http.timeout_ms", DEFAULT_ADAPTER_TIMEOUT_MS))

    @property
    def user_agent(self) -> str:
        """Get the identifying User-Agent sent to every source."""
        return self.get("http.user_agent", DEFAULT_USER_AGENT)

    @property
    def proxy_settings(self) -> Optional[Dict[str, str]]:
        """Get proxy settings if enabled."""
        proxy_config = self.get("http.proxy", {})
        if proxy_config.get("enabled"):
            return {
                "http": proxy_config.get("http"),
                "https": proxy_config.get("https"),
            }
        return None

    @property
    def sources(self) -> Dict[str, Dict[str, Any]]:
        """Get source configurations, with built-in entries as the base."""
        return _deep_merge(DEFAULT_SOURCES, self.get("sources", {}))

    def get_source_config(self, source_name: str) -> Dict[str, Any]:
        """Get configuration for a specific source."""
        return self.sources.get(source_name, {})

    def is_source_enabled(self, source_name: str) -> bool:
        """Check if a source is enabled."""
        return bool(self.get_source_config(source_name).get("enabled", False))

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging settings; SUBSCOUT_LOG_LEVEL overrides the level."""
        settings = {"level": "INFO", "format": "json", "file": None}
        settings.update(self.get("logging", {}))
        env_level = os.getenv("SUBSCOUT_LOG_LEVEL")
        if env_level:
            settings["level"] = env_level
        return settings

    @property
    def log_file(self) -> Optional[Path]:
        """Get log file path, if file logging is configured."""
        log_file = self.logging.get("file")
        if not log_file:
            return None
        path = Path(log_file)
        if not path.is_absolute():
            path = self.base_dir / path
        return path


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in (extra or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
