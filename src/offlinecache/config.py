"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for offlinecache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.offlinecache/`` on macOS and Windows.  See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Worker config** -- A single :class:`~offlinecache.models.WorkerConfig`
  JSON file naming the application, its version, the resolution strategy,
  and the content list.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and user config into the
  final effective configuration.
* **Content lists** -- :func:`load_content_list` reads the paths seeded at
  install time from a JSON or YAML file.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from offlinecache.exceptions import ConfigError
from offlinecache.models import WorkerConfig

_APP_NAME = "offlinecache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "offlinecache.json"
_ENV_PREFIX = "OFFLINECACHE_"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/offlinecache/`` (default
    ``~/.config/offlinecache/``).  On macOS/Windows: ``~/.offlinecache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    The disk content store keeps one sub-directory per namespace below
    ``<cache_dir>/namespaces``.  Cached data can be safely deleted at any
    time; the next install re-seeds it.

    On Linux/BSD: ``$XDG_CACHE_HOME/offlinecache/`` (default
    ``~/.cache/offlinecache/``).  On macOS/Windows: ``~/.offlinecache/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/offlinecache/`` (default
    ``~/.local/share/offlinecache/``).  On macOS/Windows: ``~/.offlinecache/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_store_dir(config: WorkerConfig) -> Path:
    """Return the root directory of the disk content store for *config*."""
    if config.store.directory:
        path = Path(config.store.directory).expanduser()
    else:
        path = get_cache_dir() / "namespaces"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fd = None
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)


# --- Worker config ---


def _worker_config_path() -> Path:
    """Path to the user config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_worker_config() -> WorkerConfig:
    """Load the user configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~offlinecache.models.WorkerConfig`.  If
        the file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _worker_config_path()
    if not path.is_file():
        return WorkerConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return WorkerConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_worker_config(config: WorkerConfig) -> None:
    """Persist the user configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_worker_config_path(), json.dumps(data, indent=2) + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./offlinecache.json``.

    Project-local config sits between user config and environment
    variables in the precedence chain.  A repository typically pins its
    ``app_name``, ``version``, and ``content`` list here.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    cli_app_name: Optional[str] = None,
    cli_version: Optional[str] = None,
    cli_strategy: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> WorkerConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``OFFLINECACHE_APP_NAME``,
           ``OFFLINECACHE_VERSION``, ``OFFLINECACHE_STRATEGY``,
           ``OFFLINECACHE_BASE_URL``)
        3. Project config (``./offlinecache.json``)
        4. User config (``~/.config/offlinecache/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer is invalid.
    """
    data = load_worker_config().model_dump(mode="json")

    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    overrides: dict[str, Optional[str]] = {
        "app_name": os.environ.get(f"{_ENV_PREFIX}APP_NAME") or None,
        "version": os.environ.get(f"{_ENV_PREFIX}VERSION") or None,
        "strategy": os.environ.get(f"{_ENV_PREFIX}STRATEGY") or None,
    }
    env_base_url = os.environ.get(f"{_ENV_PREFIX}BASE_URL") or None

    if cli_app_name is not None:
        overrides["app_name"] = cli_app_name
    if cli_version is not None:
        overrides["version"] = cli_version
    if cli_strategy is not None:
        overrides["strategy"] = cli_strategy
    base_url = cli_base_url if cli_base_url is not None else env_base_url

    for key, value in overrides.items():
        if value is not None:
            data[key] = value
    if base_url is not None:
        data.setdefault("network", {})["base_url"] = base_url

    try:
        return WorkerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# --- Content lists ---


def load_content_list(source: str | Path) -> list[str]:
    """Load the ordered list of paths seeded at install time.

    Accepts a JSON or YAML file holding either a list of strings or a
    mapping with a ``content`` list.  The format is chosen from the file
    extension; unknown extensions are tried as JSON, then YAML.

    Raises:
        ConfigError: If the file cannot be read or does not hold a list of
            strings.
    """
    path = Path(source).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read content list {path}: {exc}") from exc

    data = _parse_json_or_yaml(text, path)

    if isinstance(data, dict):
        data = data.get("content")
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise ConfigError(f"Content list {path} must be a list of strings")
    return list(data)


def _parse_json_or_yaml(text: str, path: Path) -> Any:
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Content list {path} is neither valid JSON nor YAML") from exc


def resolve_content(config: WorkerConfig) -> list[str]:
    """Return the effective content list: ``content_file`` wins over inline ``content``."""
    if config.content_file:
        return load_content_list(config.content_file)
    return list(config.content)
