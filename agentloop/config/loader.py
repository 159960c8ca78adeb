"""
Configuration loader for the agentloop framework.

This module loads and merges configuration from the system-wide file, the
project file, and environment variables (including a local ``.env`` file).
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from platformdirs import user_config_dir

try:
    import tomli
except ImportError:
    try:
        import tomllib as tomli  # Python 3.11+
    except ImportError:
        tomli = None  # type: ignore[assignment,unused-ignore]

from agentloop.config.schema import Configuration
from agentloop.constants import (
    APP_NAME,
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    LOG_LEVEL_ENV_VAR,
)
from agentloop.exceptions import AgentLoopError, ConfigurationError

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """
    Get the system-wide configuration directory.

    Returns
    -------
    Path
        Path to the system configuration directory.
    """
    return Path(user_config_dir(APP_NAME))


def get_system_config_path() -> Path:
    """
    Get the path to the system-wide configuration file.

    Returns
    -------
    Path
        Path to the system configuration file.
    """
    return get_config_dir() / CONFIG_FILE_NAME


def _parse_toml(path: Path) -> dict[str, Any]:
    """
    Parse a TOML configuration file.

    Parameters
    ----------
    path : Path
        Path to the TOML file to parse.

    Returns
    -------
    dict[str, Any]
        Parsed configuration as a dictionary.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or contains invalid TOML.
    """
    if tomli is None:
        raise ConfigurationError(
            "TOML parsing not available. Install 'tomli' package.",
            config_file=str(path),
        )

    try:
        with open(path, "rb") as f:
            return tomli.load(f)
    except Exception as e:
        if isinstance(e, (tomli.TOMLDecodeError, ValueError)):  # type: ignore[attr-defined]
            raise ConfigurationError(
                f"Invalid TOML in {path}: {e}",
                config_file=str(path),
                cause=e,
            ) from e
        raise ConfigurationError(
            f"Failed to read config file {path}: {e}",
            config_file=str(path),
            cause=e,
        ) from e


def _get_project_config(cwd: Path) -> Path | None:
    """
    Find the project configuration file in ``<cwd>/.agentloop``.

    Parameters
    ----------
    cwd : Path
        Directory to search from.

    Returns
    -------
    Path | None
        Path to the project configuration file if found, None otherwise.
    """
    agent_dir: Path = cwd.resolve() / CONFIG_DIR_NAME

    if agent_dir.is_dir():
        config_file: Path = agent_dir / CONFIG_FILE_NAME
        if config_file.is_file():
            return config_file

    return None


def _merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge two dictionaries.

    Values from `override` take precedence over `base`. Nested dictionaries
    are merged recursively.

    Parameters
    ----------
    base : dict[str, Any]
        Base dictionary to merge into.
    override : dict[str, Any]
        Dictionary with values that override base.

    Returns
    -------
    dict[str, Any]
        Merged dictionary.

    Examples
    --------
    >>> _merge_dicts({"a": 1, "b": {"c": 2}}, {"b": {"d": 3}})
    {'a': 1, 'b': {'c': 2, 'd': 3}}
    """
    result: dict[str, Any] = base.copy()
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def _apply_environment(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to the raw configuration.

    Parameters
    ----------
    config_dict : dict[str, Any]
        Configuration merged from files.

    Returns
    -------
    dict[str, Any]
        Configuration with environment overrides applied.
    """
    log_level: str | None = os.environ.get(LOG_LEVEL_ENV_VAR)
    if log_level:
        config_dict = _merge_dicts(config_dict, {"logging": {"level": log_level}})

    return config_dict


def load_configuration(cwd: Path | None = None) -> Configuration:
    """
    Load configuration from system, project, and environment sources.

    Sources are applied in this order, later ones overriding earlier ones:

    1. System-wide configuration file (if it exists)
    2. Project configuration in ``.agentloop/config.toml`` (if it exists)
    3. Environment variables, after loading ``.env`` from ``cwd``

    Parameters
    ----------
    cwd : Path | None, optional
        Project directory. If None, uses the current directory.

    Returns
    -------
    Configuration
        Loaded and validated configuration object.

    Raises
    ------
    ConfigurationError
        If configuration validation fails.

    Examples
    --------
    >>> config = load_configuration()
    >>> config = load_configuration(Path("/srv/assistant"))
    """
    cwd = cwd or Path.cwd()
    load_dotenv(cwd / ".env")

    system_path: Path = get_system_config_path()
    config_dict: dict[str, Any] = {}

    if system_path.is_file():
        try:
            config_dict = _parse_toml(system_path)
            logger.debug(f"Loaded system config from {system_path}")
        except ConfigurationError as e:
            logger.warning(
                f"Skipping invalid system config {system_path}: {e}",
            )

    project_path: Path | None = _get_project_config(cwd)
    if project_path:
        try:
            project_config_dict: dict[str, Any] = _parse_toml(project_path)
            config_dict = _merge_dicts(config_dict, project_config_dict)
            logger.debug(f"Loaded project config from {project_path}")
        except ConfigurationError as e:
            logger.warning(
                f"Skipping invalid project config {project_path}: {e}",
            )

    if "cwd" not in config_dict:
        config_dict["cwd"] = str(cwd)

    config_dict = _apply_environment(config_dict)

    try:
        config: Configuration = Configuration(**config_dict)
    except (AgentLoopError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            cause=e,
        ) from e

    validation_errors: list[str] = config.validate()
    if validation_errors:
        error_msg: str = "Configuration validation failed:\n" + "\n".join(
            f"  - {err}" for err in validation_errors
        )
        raise ConfigurationError(error_msg)

    logger.info(f"Configuration loaded successfully from {cwd}")
    return config
