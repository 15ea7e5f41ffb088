from typing import Optional

from rikka_ai.cli.config import AppConfig, get_config

_config: Optional[AppConfig] = None


def set_global_config(config: AppConfig) -> None:
    global _config
    _config = config


def get_global_config() -> AppConfig:
    """Config set by the CLI callback; resolved from env/defaults if unset."""
    global _config
    if _config is None:
        _config = get_config()
    return _config
