"""Common configuration helpers for the project."""

import os
from pathlib import Path

_FALSE_VALUES = {"0", "false", "no", "off"}


def load_env_variable(
    key: str, default: str | None = None, env_path: Path | None = None
) -> str:
    """Load an environment variable from the environment or a .env file.

    First checks the system environment variables, then falls back to reading
    from a .env file. If neither has the key, ``default`` is returned when
    given.

    Args:
        key: The environment variable name to load
        default: Value returned when the key is not found anywhere
        env_path: Path to the .env file. If None, uses project root .env file.

    Returns:
        The value of the environment variable

    Raises:
        ValueError: If the key is not found and no default was given
    """
    env_value = os.environ.get(key)
    if env_value is not None:
        return env_value

    if env_path is None:
        env_path = Path(__file__).parent.parent / ".env"

    if env_path.exists():
        with open(env_path, "r") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    var_key, value = line.split("=", 1)
                    if var_key.strip() == key:
                        return value.strip()

    if default is not None:
        return default

    raise ValueError(f"{key} not found in .env file or environment")


def env_flag(key: str, default: bool = True, env_path: Path | None = None) -> bool:
    """Read a boolean switch. Only explicit "off" values disable it."""
    value = load_env_variable(key, "true" if default else "false", env_path)
    return value.strip().lower() not in _FALSE_VALUES


def env_int(key: str, default: int, env_path: Path | None = None) -> int:
    """Read an integer setting.

    Raises:
        ValueError: If the configured value is not an integer
    """
    value = load_env_variable(key, str(default), env_path)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None


def load_redis_settings(env_path: Path | None = None) -> dict:
    """Load the Redis connection settings used by the entity caches.

    Returns:
        Dictionary with ``host``, ``port`` and ``db`` keys
    """
    return {
        "host": load_env_variable("ENTITY_REDIS_HOST", "localhost", env_path),
        "port": env_int("ENTITY_REDIS_PORT", 6379, env_path),
        "db": env_int("ENTITY_REDIS_DB", 0, env_path),
    }
