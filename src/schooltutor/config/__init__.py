"""Configuration package for the tutoring engine."""

from schooltutor.config.app_config import (
    AppConfig,
    ProviderConfig,
    StorageConfig,
    TutorConfig,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "ProviderConfig",
    "StorageConfig",
    "TutorConfig",
    "clear_config_cache",
    "get_provider_config",
    "load_app_config",
]
