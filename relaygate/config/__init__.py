"""Configuration module for relaygate."""

from relaygate.config.loader import load_config, get_config_path
from relaygate.config.schema import Config
from relaygate.config.access import get_config, clear_config_cache

__all__ = ["Config", "load_config", "get_config_path", "get_config", "clear_config_cache"]
