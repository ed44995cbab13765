"""Loading of variable definitions from .env files.

Loading order, later files overriding earlier ones:

1. ``.env`` in the project root, skipped silently if missing
2. Each file listed in the host's ``env_files``, an error if missing

Supported syntax is the usual dotenv format: ``KEY=value``, quoted
values, an optional ``export`` prefix, comments and blank lines.
"""

import logging
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .env_subst import is_valid_name
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = ".env"


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a single env file.

    Lines without ``=`` are ignored.

    Raises:
        ConfigError: If a variable name is not a valid identifier
    """
    values = dotenv_values(path, interpolate=False)
    env_vars: dict[str, str] = {}

    for key, value in values.items():
        if value is None:
            continue
        if not is_valid_name(key):
            raise ConfigError(
                f"Invalid environment variable name '{key}' in {path}",
                key=key,
                path=str(path),
            )
        env_vars[key] = value

    return env_vars


def load_env_files(project_root: Path, env_files: Iterable[str] = ()) -> dict[str, str]:
    """Load variables from the default .env file and any extra files.

    Args:
        project_root: Directory containing bridge.yml
        env_files: Extra files relative to project_root, in load order

    Returns:
        Merged mapping of variable names to values

    Raises:
        ConfigError: If a listed file is missing or contains invalid names
    """
    env_vars: dict[str, str] = {}

    default_path = project_root / DEFAULT_ENV_FILE
    if default_path.is_file():
        env_vars.update(parse_env_file(default_path))
        logger.debug(f"Loaded {default_path}")

    for name in env_files:
        path = project_root / name
        if not path.is_file():
            raise ConfigError(
                f"Environment file not found: {path}. "
                "Remove it from env_files or create the file.",
                path=str(path),
            )
        env_vars.update(parse_env_file(path))
        logger.debug(f"Loaded {path}")

    return env_vars
