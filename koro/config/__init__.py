"""Configuration module."""

from koro.config.schema import (
    Config,
    load_config,
    save_config,
    get_config_path,
)

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
