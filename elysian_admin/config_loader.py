"""
Configuration loading utilities for the ElysianDB admin console.

This module loads config.yaml, merges it over the built-in defaults and
validates the API and UI settings.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging
from copy import deepcopy

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.yaml")

_config_cache: Optional[Dict[str, Any]] = None


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get the built-in default configuration.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'ElysianDB Admin',
            'version': '1.0.0',
            'debug': False
        },
        'api': {
            'base_url': 'http://localhost:8089',
            'timeout': 10,
            'username': None,
            'password': None,
            'max_parallel_writes': 4
        },
        'ui': {
            'page_title': 'ElysianDB Admin',
            'sidebar_title': 'Navigation',
            'spinner_delay_ms': 200,
            'default_query_limit': 50
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        }
    }


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load application configuration.

    Missing, empty or malformed files fall back to the defaults.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        config_path = CONFIG_FILE

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        return default_config

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)

        if user_config is None:
            logger.warning(f"Configuration file is empty: {config_path}")
            return default_config

        if not isinstance(user_config, dict):
            logger.error(f"Configuration file is not a valid dictionary: {config_path}")
            logger.info("Using default configuration")
            return default_config

        config = deep_merge(default_config, user_config)

        logger.info(f"Successfully loaded configuration from {config_path}")
        return config

    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config

    except (IOError, OSError) as e:
        logger.error(f"Failed to read configuration file {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config


def _positive_number(section: Dict[str, Any], key: str, cast) -> bool:
    if key not in section:
        return True
    try:
        value = cast(section[key])
    except (ValueError, TypeError):
        logger.warning(f"{key} must be a valid number")
        return False
    if value <= 0:
        logger.warning(f"{key} must be positive")
        return False
    return True


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration structure and required fields.

    Args:
        config: Configuration dictionary to validate

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ['app', 'api', 'ui', 'logging']

    for section in required_sections:
        if not isinstance(config.get(section), dict):
            logger.warning(f"Missing required configuration section: {section}")
            return False

    app = config['app']
    if 'name' not in app or 'version' not in app:
        logger.warning("Missing required app configuration (name or version)")
        return False

    api = config['api']
    base_url = api.get('base_url')
    if not isinstance(base_url, str) or not base_url.startswith(('http://', 'https://')):
        logger.warning(f"api.base_url must be an http(s) URL, got {base_url!r}")
        return False

    if not _positive_number(api, 'timeout', float):
        return False
    if not _positive_number(api, 'max_parallel_writes', int):
        return False

    ui = config['ui']
    if 'spinner_delay_ms' in ui:
        try:
            if int(ui['spinner_delay_ms']) < 0:
                logger.warning("spinner_delay_ms must not be negative")
                return False
        except (ValueError, TypeError):
            logger.warning("spinner_delay_ms must be a valid integer")
            return False
    if not _positive_number(ui, 'default_query_limit', int):
        return False

    return True


def get_config_summary(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Get a summary of the current configuration.

    The API password is never included.
    """
    api = config.get('api', {})
    return {
        'app_name': config.get('app', {}).get('name', 'Unknown'),
        'app_version': config.get('app', {}).get('version', 'Unknown'),
        'debug_mode': config.get('app', {}).get('debug', False),
        'base_url': api.get('base_url', 'Unknown'),
        'timeout': api.get('timeout', 10),
        'auto_login': bool(api.get('username')),
        'max_parallel_writes': api.get('max_parallel_writes', 4),
        'log_level': config.get('logging', {}).get('level', 'INFO')
    }


def get_config() -> Dict[str, Any]:
    """Cached configuration of the running app."""
    global _config_cache

    if _config_cache is None:
        _config_cache = load_config()
        if not validate_config(_config_cache):
            logger.warning("Configuration is invalid, using defaults")
            _config_cache = get_default_config()
    return _config_cache


def get_config_value(section: str, key: str, default: Any = None) -> Any:
    """
    Get a specific configuration value.

    Args:
        section: Configuration section (e.g., 'api', 'ui')
        key: Configuration key within section
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    config = get_config()
    return config.get(section, {}).get(key, default)
