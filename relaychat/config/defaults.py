"""Default configuration values for RelayChat."""

from typing import Any

from relaychat.config.constants import (
    DEFAULT_MAX_DURATION_SECONDS,
    DEFAULT_MAX_STEPS,
    DEFAULT_STREAM_POLL_INTERVAL_SECONDS,
    DEFAULT_STREAM_STALE_SECONDS,
)


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    return {
        # Provider credentials shared by every chat model entry
        "providers": {
            "openai": {
                "type": "openai",
                "api_key": None,
                "base_url": "https://api.openai.com/v1",
                "options": {},
            },
        },
        # Model selectors accepted in POST /chat, plus internal ones
        "chat_models": {
            "chat-model": {
                "provider": "openai",
                "model": "gpt-4o-mini",
                "reasoning": False,
            },
            "chat-model-reasoning": {
                "provider": "openai",
                "model": "o4-mini",
                "reasoning": True,
            },
            "title-model": {
                "provider": "openai",
                "model": "gpt-4o-mini",
                "reasoning": False,
            },
            "artifact-model": {
                "provider": "openai",
                "model": "gpt-4o-mini",
                "reasoning": False,
            },
        },
        # Per user-type quotas and model access
        "entitlements": {
            "guest": {
                "max_messages_per_day": 20,
                "available_chat_models": ["chat-model", "chat-model-reasoning"],
            },
            "regular": {
                "max_messages_per_day": 100,
                "available_chat_models": ["chat-model", "chat-model-reasoning"],
            },
        },
        # Storage
        "database_url": "sqlite+pysqlite:///./.relaychat/chat.sqlite",
        # Unset means resumable streams are disabled
        "stream_buffer_url": None,
        # Stream lifecycle
        "stream_stale_seconds": DEFAULT_STREAM_STALE_SECONDS,
        "max_duration_seconds": DEFAULT_MAX_DURATION_SECONDS,
        "max_steps": DEFAULT_MAX_STEPS,
        "stream_poll_interval_seconds": DEFAULT_STREAM_POLL_INTERVAL_SECONDS,
        # Server Configuration
        "server_host": "localhost",
        "server_port": 3001,
        # Logging Configuration
        "log_level": "INFO",
        "log_format": "pretty",
        "log_colors": True,
    }
