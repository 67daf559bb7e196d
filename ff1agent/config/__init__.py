"""Configuration module for ff1agent."""

from ff1agent.config.loader import (
    create_sample_config,
    find_config_path,
    get_config_path,
    load_config,
    save_config,
    validate_config,
)
from ff1agent.config.schema import Config

__all__ = [
    "Config",
    "create_sample_config",
    "find_config_path",
    "get_config_path",
    "load_config",
    "save_config",
    "validate_config",
]
