"""Configuration settings for RelayChat.

This module provides a Settings class that wraps the ConfigManager,
providing property-based access to configuration values with hot-reload support.
"""

from __future__ import annotations

import os
from typing import Any

from relaychat.config.constants import (
    DEFAULT_MAX_DURATION_SECONDS,
    DEFAULT_MAX_STEPS,
    DEFAULT_STREAM_POLL_INTERVAL_SECONDS,
    DEFAULT_STREAM_STALE_SECONDS,
)
from relaychat.config.defaults import get_default_config
from relaychat.config.manager import ConfigManager


class Settings:
    """Application settings with hot-reload support.

    Values come from the ConfigManager when one is attached, otherwise from
    environment variables and finally the built-in defaults.
    """

    def __init__(self, config_manager: ConfigManager | None = None):
        self._config_manager = config_manager

    def validate_or_raise(self) -> None:
        from relaychat.config.validation import validate_or_raise as _v

        _v(self.chat_models, self.openai_api_key)

    def validation_status(self) -> tuple[bool, list[str]]:
        """Return (is_valid, errors) without raising."""
        try:
            self.validate_or_raise()
            return True, []
        except ValueError as exc:
            return False, [str(exc)]

    def _get(
        self,
        key: str,
        default: Any,
        env_key: str | None = None,
    ) -> Any:
        """Get config value from manager, fallback to env, then default."""
        if self._config_manager:
            if "." in key:
                cfg_obj: object = self._config_manager.get_all()
                for part in key.split("."):
                    if isinstance(cfg_obj, dict) and part in cfg_obj:
                        cfg_obj = cfg_obj[part]
                    else:
                        return default
                return cfg_obj
            return self._config_manager.get(key, default)
        if env_key and (env_val := os.getenv(env_key)):
            if isinstance(default, bool):
                return env_val.lower() in ("true", "1", "yes")
            elif isinstance(default, int):
                return int(env_val)
            elif isinstance(default, float):
                return float(env_val)
            return env_val
        return default

    # Provider credentials
    def get_provider_config(self, provider: str) -> dict:
        """Return provider config from providers.<name>."""
        fallback = get_default_config()["providers"].get(provider)
        prov = self._get(f"providers.{provider}", fallback)
        if isinstance(prov, dict):
            return prov
        return {}

    @property
    def openai_api_key(self) -> str | None:
        prov = self.get_provider_config("openai")
        if prov.get("api_key"):
            return prov.get("api_key")
        return os.getenv("OPENAI_API_KEY")

    @property
    def openai_base_url(self) -> str | None:
        prov = self.get_provider_config("openai")
        if prov.get("base_url"):
            return prov.get("base_url")
        return os.getenv("OPENAI_BASE_URL")

    # Chat models
    @property
    def chat_models(self) -> dict[str, dict]:
        models = self._get("chat_models", get_default_config()["chat_models"])
        return models if isinstance(models, dict) else {}

    def get_chat_model_config(self, selector: str) -> dict | None:
        entry = self.chat_models.get(selector)
        return entry if isinstance(entry, dict) else None

    # Entitlements
    def entitlements_for(self, user_type: str) -> dict:
        entitlements = self._get("entitlements", get_default_config()["entitlements"])
        entry = entitlements.get(user_type) if isinstance(entitlements, dict) else None
        if not isinstance(entry, dict):
            raise ValueError(f"No entitlements configured for user type '{user_type}'")
        return entry

    # Storage
    @property
    def database_url(self) -> str:
        return self._get(
            "database_url", get_default_config()["database_url"], "DATABASE_URL"
        )

    @property
    def stream_buffer_url(self) -> str | None:
        value = self._get("stream_buffer_url", None)
        return value or os.getenv("STREAM_BUFFER_URL")

    # Stream lifecycle
    @property
    def stream_stale_seconds(self) -> float:
        return float(
            self._get(
                "stream_stale_seconds",
                float(DEFAULT_STREAM_STALE_SECONDS),
                "STREAM_STALE_SECONDS",
            )
        )

    @property
    def max_duration_seconds(self) -> float:
        return float(
            self._get(
                "max_duration_seconds",
                float(DEFAULT_MAX_DURATION_SECONDS),
                "MAX_DURATION_SECONDS",
            )
        )

    @property
    def max_steps(self) -> int:
        return int(self._get("max_steps", DEFAULT_MAX_STEPS, "MAX_STEPS"))

    @property
    def stream_poll_interval_seconds(self) -> float:
        return float(
            self._get(
                "stream_poll_interval_seconds",
                DEFAULT_STREAM_POLL_INTERVAL_SECONDS,
                "STREAM_POLL_INTERVAL_SECONDS",
            )
        )

    # Server Configuration
    @property
    def server_host(self) -> str:
        return self._get("server_host", "localhost", "SERVER_HOST")

    @property
    def server_port(self) -> int:
        return self._get("server_port", 3001, "SERVER_PORT")

    # Logging Configuration
    @property
    def log_level(self) -> str:
        return self._get("log_level", "INFO", "LOG_LEVEL")

    @property
    def log_format(self) -> str:
        return self._get("log_format", "pretty", "LOG_FORMAT")

    @property
    def log_colors(self) -> bool:
        return self._get("log_colors", True, "LOG_COLORS")


# Global settings instance (will be initialized with config manager)
settings = Settings()
