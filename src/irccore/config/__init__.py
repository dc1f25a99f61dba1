"""Configuration: YAML + env overlay."""

from irccore.config.loader import DEFAULT_CONFIG, _deep_update, load_config, load_config_with_env
from irccore.config.schema import Config, cfg

__all__ = ["DEFAULT_CONFIG", "Config", "_deep_update", "cfg", "load_config", "load_config_with_env"]
