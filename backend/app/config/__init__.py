"""
Configuration package.

``settings`` holds environment-driven options (pydantic-settings);
``yaml_config`` holds the parsed config/default.yaml tuning file.
"""

from app.config.settings import (
    DEFAULT_YAML_CONFIG_PATH,
    Settings,
    get_settings,
    load_yaml_config,
    settings,
    yaml_config,
)

__all__ = [
    "DEFAULT_YAML_CONFIG_PATH",
    "Settings",
    "get_settings",
    "load_yaml_config",
    "settings",
    "yaml_config",
]
