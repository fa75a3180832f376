"""Configuration loading utilities for econ-marker."""

import copy
import os
from typing import Any, Optional
import logging

import yaml

LOG = logging.getLogger(__name__)

ConfigType = dict[str, Any]

# Directory holding default.yaml (and an optional, uncommitted local.yaml)
CONFIG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config")

# Extra YAML file layered over the packaged configs
CONFIG_ENV_VAR = "ECONMARKER_CONFIG"

_MISSING = object()


def _merge(orig_conf: Any, new_conf: Any) -> Any:
    """Recursively merge configuration dictionaries; new values win."""
    if isinstance(orig_conf, dict) and isinstance(new_conf, dict):
        result = copy.deepcopy(orig_conf)
        for k, v in new_conf.items():
            if k in orig_conf:
                result[k] = _merge(orig_conf[k], v)
            else:
                result[k] = copy.deepcopy(v)
        return result
    return copy.deepcopy(new_conf)


def load_configs(*path_configs: str) -> ConfigType:
    """Load and merge YAML configuration files.

    Args:
        *path_configs: Paths to YAML configuration files, later ones override earlier ones

    Returns:
        Merged configuration dictionary

    Raises:
        TypeError: If a config file doesn't contain a dict
        ValueError: If no configs are loaded
    """
    result: ConfigType = {}
    for path in path_configs:
        LOG.info("loading config from %s", path)
        if os.path.isfile(path):
            with open(path, "r") as f:
                c = yaml.safe_load(f)
                if c is None:
                    continue
                if not isinstance(c, dict):
                    raise TypeError(f"YAML config file {path} must be a dict")
                result = _merge(result, c)
        else:
            LOG.warning("Skipping missing config file %s", repr(path))
    if not result:
        raise ValueError("No configs loaded")
    return result


def load_default_configs(config_dir: Optional[str] = None) -> ConfigType:
    """Load default and local configuration files.

    Looks for config files in the following order:
    1. default.yaml (base configuration, shipped with the package)
    2. local.yaml (local overrides, not committed to git)
    3. the file named by $ECONMARKER_CONFIG, if set

    Returns:
        Merged configuration
    """
    config_dir = config_dir or CONFIG_DIR
    paths = [
        os.path.join(config_dir, "default.yaml"),
        os.path.join(config_dir, "local.yaml"),
    ]
    extra = os.environ.get(CONFIG_ENV_VAR)
    if extra:
        paths.append(extra)
    return load_configs(*paths)


def get_config(key: str, config: Optional[ConfigType] = None, default: Any = _MISSING) -> Any:
    """Get a configuration value by dot-separated key.

    Args:
        key: Dot-separated path to config value (e.g., "marking.timeout")
        config: Configuration dict (if None, loads default configs)
        default: Value returned when the key is absent (if omitted, KeyError is raised)

    Returns:
        Configuration value

    Raises:
        KeyError: If key not found in configuration and no default was given
    """
    if config is None:
        config = load_default_configs()

    value: Any = config
    for k in key.split('.'):
        if not isinstance(value, dict) or k not in value:
            if default is not _MISSING:
                return default
            raise KeyError(f"Key {key} not found in configuration")
        value = value[k]
    return value
