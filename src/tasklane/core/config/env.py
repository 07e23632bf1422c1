"""Environment loading helpers.

tasklane is configured through ``TASKLANE_*`` variables (see
``loader.apply_env_overrides``). Before config is loaded, those variables can
also come from .env files, layered as:

  os.environ (pre-existing) > project .env.local > project .env > user .env

Only ``TASKLANE_*`` entries are taken from the files; anything else in a
project's .env belongs to that project, not to tasklane.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)

ENV_PREFIX = "TASKLANE_"


def read_env_file(path: Path, prefix: str = ENV_PREFIX) -> dict[str, str]:
    """Return the ``prefix``-ed assignments of one .env file ({} if missing)."""
    if not path.is_file():
        return {}
    return {
        str(key): str(value)
        for key, value in dotenv_values(path).items()
        if key and value is not None and key.startswith(prefix)
    }


def default_user_env_paths() -> list[Path]:
    return [get_xdg_config_home() / "tasklane" / ".env"]


def default_project_env_paths(project_dir: Path) -> list[Path]:
    return [project_dir / ".env", project_dir / ".env.local"]


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
    prefix: str = ENV_PREFIX,
) -> set[str]:
    """Export tasklane settings from user and project .env files.

    Files are read lowest priority first, so a later file wins over an
    earlier one. A variable already present in the process environment is
    never replaced.

    Args:
        project_dir: base directory for project env paths (defaults to cwd)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths
        prefix: only variables with this prefix are loaded

    Returns:
        The variable names that were exported
    """
    if project_dir is None:
        project_dir = Path.cwd()
    if user_env_paths is None:
        user_env_paths = default_user_env_paths()
    if project_env_paths is None:
        project_env_paths = default_project_env_paths(project_dir)

    layered: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        values = read_env_file(Path(path), prefix)
        if values:
            logger.debug("Read %d setting(s) from %s", len(values), path)
        layered.update(values)

    exported = {name for name in layered if name not in os.environ}
    for name in exported:
        os.environ[name] = layered[name]
    return exported
