from __future__ import annotations

from copy import deepcopy
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

ALLOWED_PROVIDER_TYPES: list[str] = ["openai"]
USER_TYPES: tuple[str, ...] = ("guest", "regular")


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge updates into base without mutating inputs.

    - Keys present in updates with non-None values are merged/overwritten
    - Keys present in updates with None values are skipped (preserve base value)
    - Keys not present in updates are preserved from base
    """
    result = deepcopy(base)
    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        elif key in result and value is None:
            continue
        else:
            result[key] = value
    return result


class ProviderConfig(BaseModel):
    type: str = "openai"
    api_key: str | None = None
    base_url: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class ChatModelConfig(BaseModel):
    provider: str
    model: str
    reasoning: bool = False
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class EntitlementConfig(BaseModel):
    max_messages_per_day: int = Field(ge=0)
    available_chat_models: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class AppConfig(BaseModel):
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    chat_models: dict[str, ChatModelConfig] = Field(default_factory=dict)
    entitlements: dict[str, EntitlementConfig] = Field(default_factory=dict)

    database_url: str = "sqlite+pysqlite:///./.relaychat/chat.sqlite"
    stream_buffer_url: str | None = None
    stream_stale_seconds: float = Field(default=60, gt=0)
    max_duration_seconds: float = Field(default=60, gt=0)
    max_steps: int = Field(default=5, ge=1)
    stream_poll_interval_seconds: float = Field(default=0.5, gt=0)

    server_host: str = "localhost"
    server_port: int = 3001
    log_level: str = "INFO"
    log_format: Literal["pretty", "json"] = "pretty"
    log_colors: bool = True

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="after")
    def check_referential_integrity(self) -> AppConfig:
        """Validate logical relationships between config sections."""
        available_providers = set(self.providers.keys())
        errors = []

        for name, provider in self.providers.items():
            if provider.type not in ALLOWED_PROVIDER_TYPES:
                errors.append(
                    f"Provider '{name}' has unsupported type '{provider.type}'. "
                    f"Allowed: {', '.join(ALLOWED_PROVIDER_TYPES)}"
                )

        for name, chat_model in self.chat_models.items():
            if chat_model.provider not in available_providers:
                errors.append(
                    f"Chat model '{name}' references unknown provider '{chat_model.provider}'. "
                    f"Available providers: {', '.join(sorted(available_providers)) or 'none'}"
                )

        for user_type, entitlement in self.entitlements.items():
            if user_type not in USER_TYPES:
                errors.append(
                    f"Entitlements declared for unknown user type '{user_type}'. "
                    f"Allowed: {', '.join(USER_TYPES)}"
                )
            for selector in entitlement.available_chat_models:
                if selector not in self.chat_models:
                    errors.append(
                        f"Entitlement '{user_type}' references unknown chat model '{selector}'"
                    )

        if errors:
            raise ValueError("; ".join(errors))

        return self


class ConfigValidationError(Exception):
    """Structured configuration validation error."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration using the pydantic schema.

    Raises:
        ConfigValidationError: With structured list of human-readable error messages.
    """
    try:
        app_config = AppConfig.model_validate(config)
        return app_config.model_dump(mode="json")
    except ValidationError as e:
        errors = _extract_validation_errors(e)
        raise ConfigValidationError(errors) from e
    except ValueError as e:
        errors = [err.strip() for err in str(e).split(";") if err.strip()]
        raise ConfigValidationError(errors) from e


def _extract_validation_errors(exc: ValidationError) -> list[str]:
    """Convert pydantic ValidationError to list of human-readable messages."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err["loc"]) if err["loc"] else "config"
        msg = err["msg"]

        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]

        if err["type"] == "value_error":
            errors.extend(part.strip() for part in msg.split(";") if part.strip())
        elif err["type"] == "missing":
            errors.append(f"Missing required field: {loc}")
        elif err["type"] == "string_type":
            errors.append(f"Expected string at '{loc}'")
        elif err["type"] in ("int_type", "int_parsing"):
            errors.append(f"Expected integer at '{loc}'")
        elif err["type"] in ("bool_type", "bool_parsing"):
            errors.append(f"Expected boolean at '{loc}'")
        elif err["type"] == "dict_type":
            errors.append(f"Expected object at '{loc}'")
        else:
            errors.append(f"{loc}: {msg}")

    return errors if errors else ["Invalid configuration"]


def normalize_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate a merged config and return it with schema defaults applied.

    Raises ValueError (via ConfigValidationError) when the structure is invalid.
    """
    try:
        return validate_config(config)
    except ConfigValidationError as exc:
        raise ValueError(str(exc)) from exc
