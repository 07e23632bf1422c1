"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import TasklaneConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".tasklane.json"

# Global cache to avoid reloading config multiple times per process
_config_cache: TasklaneConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/tasklane/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "tasklane" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Project directory (defaults to current directory)
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence; nested dicts are merged, not
    replaced.

    Example:
        >>> deep_merge({"search": {"max_page_size": 20}}, {"search": {"default_page_size": 3}})
        {'search': {'max_page_size': 20, 'default_page_size': 3}}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON config file, returning None if it doesn't exist or is invalid.
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        # A broken config file should not make the tool unusable
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None
    if isinstance(data, dict):
        return data
    logger.warning("Ignoring config at %s: expected a JSON object", path)
    return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    result.setdefault(section, {})
    result[section] = {**result[section], key: value}


def _int_env(name: str) -> int | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s value '%s', ignoring", name, raw)
        return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        TASKLANE_DATA_DIR - overrides storage.data_dir
        TASKLANE_TASKS_FILE - overrides storage.tasks_file
        TASKLANE_BACKUP_DIR - overrides storage.backup_dir
        TASKLANE_VERIFY_THRESHOLD - overrides verification.pass_threshold
        TASKLANE_MAX_PAGE_SIZE - overrides search.max_page_size
    """
    result = config_dict.copy()

    for env_name, key in (
        ("TASKLANE_DATA_DIR", "data_dir"),
        ("TASKLANE_TASKS_FILE", "tasks_file"),
        ("TASKLANE_BACKUP_DIR", "backup_dir"),
    ):
        if value := os.environ.get(env_name):
            _set(result, "storage", key, value)

    threshold = _int_env("TASKLANE_VERIFY_THRESHOLD")
    if threshold is not None:
        if 0 <= threshold <= 100:
            _set(result, "verification", "pass_threshold", threshold)
        else:
            logger.warning(
                "TASKLANE_VERIFY_THRESHOLD must be between 0 and 100, got %d, ignoring", threshold
            )

    max_page_size = _int_env("TASKLANE_MAX_PAGE_SIZE")
    if max_page_size is not None:
        if max_page_size >= 1:
            _set(result, "search", "max_page_size", max_page_size)
        else:
            logger.warning("TASKLANE_MAX_PAGE_SIZE must be >= 1, got %d, ignoring", max_page_size)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.
    """
    return {
        "storage": {
            "data_dir": ".tasklane",
        },
        "search": {
            "default_page_size": 5,
            "max_page_size": 20,
        },
        "verification": {
            "pass_threshold": 80,
        },
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> TasklaneConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TASKLANE_*)
        2. Project config (.tasklane.json)
        3. User config (~/.config/tasklane/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .tasklane.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated TasklaneConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation

    Example:
        >>> config = load_config()
        >>> config.verification.pass_threshold
        80
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = TasklaneConfig(**merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
