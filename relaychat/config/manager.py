"""Configuration manager with hot-reload support."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from relaychat.config.providers import ConfigProvider, LocalFileConfigProvider
from relaychat.config.schema import deep_merge
from relaychat.utils.logger import get_logger

logger = get_logger("config.manager")


class ConfigManager:
    """Holds the merged configuration and notifies listeners on reload."""

    def __init__(self, provider: ConfigProvider):
        self.provider = provider
        self._config: dict[str, Any] = {}
        self._change_callbacks: list[Callable[[dict[str, Any]], None]] = []
        self._loaded = False

    async def initialize(self) -> None:
        """Load the initial config. Watching is started separately."""
        self._config = await self.provider.load()
        self._loaded = True
        logger.info("Configuration initialized", config_keys=list(self._config.keys()))

    async def start_watching(self) -> None:
        await self.provider.watch(self._on_config_changed)

    async def stop_watching(self) -> None:
        await self.provider.stop_watching()

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    async def update(self, updates: dict[str, Any]) -> None:
        """Deep-merge updates into the config and persist user overrides."""
        self._config = deep_merge(self._config, updates)

        user_cfg = getattr(self.provider, "_user_config", None)
        if isinstance(user_cfg, dict):
            user_cfg = deep_merge(user_cfg, updates)
            await self.provider.save(user_cfg)
        else:
            await self.provider.save(self._config)

        logger.info("Configuration updated", keys=list(updates.keys()))
        self._notify_callbacks()

    def get_all(self) -> dict[str, Any]:
        return self._config.copy()

    def register_change_callback(
        self, callback: Callable[[dict[str, Any]], None]
    ) -> None:
        self._change_callbacks.append(callback)

    def _on_config_changed(self, new_config: dict[str, Any]) -> None:
        old_config = self._config.copy()
        self._config = new_config

        changed_keys = [
            key
            for key in set(old_config.keys()) | set(new_config.keys())
            if old_config.get(key) != new_config.get(key)
        ]

        if changed_keys:
            logger.info("Configuration reloaded", changed_keys=changed_keys)
        else:
            logger.debug("Configuration reloaded with no changes")

        self._notify_callbacks()

    def _notify_callbacks(self) -> None:
        for callback in self._change_callbacks:
            try:
                callback(self._config.copy())
            except Exception as e:
                logger.error(
                    "Error in config change callback",
                    error=str(e),
                    callback=getattr(callback, "__name__", repr(callback)),
                )


_config_manager: ConfigManager | None = None


def create_config_manager(
    config_dir: Path, *, defaults: dict[str, Any] | None = None
) -> ConfigManager:
    """Create the global config manager backed by <config_dir>/config.json."""
    global _config_manager

    config_path = config_dir / "config.json"
    provider = LocalFileConfigProvider(config_path, defaults=defaults)
    _config_manager = ConfigManager(provider)

    logger.info("Config manager created", config_path=str(config_path))
    return _config_manager


def get_config_manager() -> ConfigManager:
    """Get the global config manager instance."""
    if _config_manager is None:
        raise RuntimeError(
            "Config manager not initialized. Call create_config_manager() first."
        )
    return _config_manager
