"""YAML configuration loading with ``${VAR}`` substitution from .env files."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .core.exceptions import ConfigurationError

logger = logging.getLogger("ccrouter")

CONFIG_ENV = "CCROUTER_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def resolve_config_path(path: Optional[str] = None) -> Path:
    """Explicit path, then $CCROUTER_CONFIG, then ./config.yaml.

    Relative paths are taken from the current working directory.
    """
    raw = path or os.getenv(CONFIG_ENV) or DEFAULT_CONFIG_PATH
    return Path(raw).expanduser().resolve()


def load_env_values(env_path: Path) -> dict[str, str]:
    """Read a .env file into a dict; os.environ is left untouched."""
    if not env_path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(env_path).items() if value is not None}


def load_config(
    path: Optional[str] = None,
    env_path: Optional[str] = None,
    substitute_env: bool = True,
) -> dict:
    """Load the router configuration.

    Args:
        path: Config file; see ``resolve_config_path`` for the fallbacks.
        env_path: .env file used for substitution. Defaults to the ``.env``
            next to the config file.
        substitute_env: Expand ``${VAR}``/``$VAR`` placeholders in string values.

    Raises:
        ConfigurationError: The file is missing, is not valid YAML, or its
            top level is not a mapping.
    """
    config_path = resolve_config_path(path)
    if not config_path.is_file():
        logger.error(f"Config file not found: {config_path}")
        raise ConfigurationError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping, got {type(data).__name__}"
        )

    if substitute_env:
        env_file = Path(env_path).expanduser() if env_path else config_path.with_name(".env")
        env_values = load_env_values(env_file)
        if env_values:
            logger.info(f"Using {len(env_values)} values from {env_file}")
        data = expand_placeholders(data, env_values)

    return data


def expand_placeholders(value: Any, env_values: Optional[Mapping[str, str]] = None) -> Any:
    """Expand placeholders in every string nested inside *value*.

    .env values win over the process environment. An unset variable keeps
    its placeholder and logs a warning.
    """
    env_values = env_values or {}

    def lookup(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        resolved = env_values.get(name, os.environ.get(name))
        if resolved is None:
            logger.warning(f"Environment variable '{name}' is not set; keeping '{match.group(0)}'")
            return match.group(0)
        return resolved

    if isinstance(value, str):
        return _PLACEHOLDER.sub(lookup, value)
    if isinstance(value, dict):
        return {key: expand_placeholders(item, env_values) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_placeholders(item, env_values) for item in value]
    return value
