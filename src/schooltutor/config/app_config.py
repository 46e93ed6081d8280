"""Application configuration.

Settings live in data/config/app_config_v1.yaml. Any key the file leaves
out keeps its built-in default, so a file that only sets
``tutor.generation_timeout`` is valid.

Usage:
    from schooltutor.config.app_config import load_app_config

    config = load_app_config()
    ttl = config.tutor.session_ttl_seconds
"""

from __future__ import annotations

import os
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, TypeVar

import structlog
import yaml

logger = structlog.get_logger(__name__)

CONFIG_FILE = Path("data/config/app_config_v1.yaml")

DEFAULT_PROVIDERS: dict[str, dict[str, Any]] = {
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
        "default_model": "llama-3.2-3b-instruct",
    },
    "openai": {
        "default_model": "gpt-4o-mini",
        "api_key_env": "OPENAI_API_KEY",
    },
}


@dataclass
class ProviderConfig:
    """One OpenAI-compatible provider."""

    base_url: str | None = None
    default_model: str = "default"
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        return os.environ.get(self.api_key_env) if self.api_key_env else None


@dataclass
class TutorConfig:
    """Tutoring sessions and content generation."""

    default_provider: str = "lmstudio"
    generation_timeout: float = 20.0
    history_window: int = 10
    session_ttl_seconds: int = 3600


@dataclass
class StorageConfig:
    """Profile and progress stores."""

    db_path: str = "data/db/schooltutor.db"
    retention_days: int = 365


@dataclass
class AppConfig:
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    tutor: TutorConfig = field(default_factory=TutorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


_cached_config: AppConfig | None = None

T = TypeVar("T")


def _section(cls: type[T], data: dict[str, Any] | None) -> T:
    """Build a config dataclass from a YAML mapping, ignoring unknown keys.

    Numeric values are coerced to the type of the field's default, so
    ``generation_timeout: 5`` becomes ``5.0``.
    """
    data = data or {}
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.default is not MISSING and isinstance(f.default, (int, float)) and value is not None:
            value = type(f.default)(value)
        kwargs[f.name] = value
    return cls(**kwargs)


def _parse_config(data: dict[str, Any]) -> AppConfig:
    providers_data = {name: dict(values) for name, values in DEFAULT_PROVIDERS.items()}
    for name, values in (data.get("providers") or {}).items():
        providers_data.setdefault(name, {}).update(values or {})

    return AppConfig(
        providers={name: _section(ProviderConfig, values) for name, values in providers_data.items()},
        tutor=_section(TutorConfig, data.get("tutor")),
        storage=_section(StorageConfig, data.get("storage")),
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load (and cache) the application config.

    Args:
        force_reload: Re-read the file even if a cached config exists.

    Returns:
        AppConfig with defaults for anything the file omits.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any] = {}
    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Settings for a named provider, or None if it is not configured."""
    return load_app_config().providers.get(provider)


def clear_config_cache() -> None:
    """Forget the cached config (tests, runtime edits)."""
    global _cached_config
    _cached_config = None
