"""Configuration management with XDG paths and precedence resolution.

This module resolves the settings of one conversion run:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.aepgraph/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **User config** -- ``config.json`` in the config directory.
* **Project config** -- ``./aepgraph.json`` in the working directory.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config and user config into a
  :class:`~aepgraph.models.ConversionConfig`.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from aepgraph.exceptions import ConfigError
from aepgraph.models import ConversionConfig

_APP_NAME = "aepgraph"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "aepgraph.json"

# Environment variable -> ConversionConfig field
ENV_VARS = {
    "AEPGRAPH_PATH_PREFIX": "path_prefix",
    "AEPGRAPH_SERVER_URL": "server_url",
    "AEPGRAPH_FETCH_TIMEOUT": "fetch_timeout",
    "AEPGRAPH_DEADLINE": "deadline",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/aepgraph/`` (default ``~/.config/aepgraph/``).
    On macOS/Windows: ``~/.aepgraph/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/aepgraph/`` (default ``~/.local/share/aepgraph/``).
    On macOS/Windows: ``~/.aepgraph/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Config files ---


def _read_json_object(path: Path, kind: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {kind} config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {kind} config at {path}: expected a JSON object")
    return data


def load_user_config() -> Optional[dict[str, Any]]:
    """Load ``config.json`` from the config directory.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    return _read_json_object(get_config_dir() / _CONFIG_FILENAME, "user")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./aepgraph.json``.

    A repository can pin its path prefix or server URL here so that every
    contributor converts the same way.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    return _read_json_object(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project")


def load_env_config() -> dict[str, str]:
    """Return the ``AEPGRAPH_*`` settings present in the environment."""
    values = {}
    for env_var, field_name in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            values[field_name] = value
    return values


# --- Precedence resolution ---


def resolve_config(
    cli_path_prefix: Optional[str] = None,
    cli_server_url: Optional[str] = None,
    cli_fetch_timeout: Optional[float] = None,
    cli_deadline: Optional[float] = None,
) -> ConversionConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``AEPGRAPH_PATH_PREFIX``,
           ``AEPGRAPH_SERVER_URL``, ``AEPGRAPH_FETCH_TIMEOUT``,
           ``AEPGRAPH_DEADLINE``)
        3. Project config (``./aepgraph.json``)
        4. User config (``~/.config/aepgraph/config.json``)
        5. Defaults

    Raises:
        ConfigError: If a config file is invalid or a value fails validation.
    """
    merged: dict[str, Any] = {}
    # 4. User config
    merged.update(load_user_config() or {})
    # 3. Project config
    merged.update(load_project_config() or {})
    # 2. Environment
    merged.update(load_env_config())
    # 1. CLI flags
    cli = {
        "path_prefix": cli_path_prefix,
        "server_url": cli_server_url,
        "fetch_timeout": cli_fetch_timeout,
        "deadline": cli_deadline,
    }
    merged.update({k: v for k, v in cli.items() if v is not None})

    try:
        return ConversionConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
