"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for pollcurl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.pollcurl/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings file** -- a single :class:`~pollcurl.models.ClientSettings`
  JSON file (``config.json``) storing poll cadence, default timeout, and
  transport tunables.
* **Precedence resolution** -- :func:`resolve_settings` merges explicit
  overrides, environment variables, the settings file, and defaults into
  the effective settings.

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

from pydantic import ValidationError

from pollcurl.exceptions import ConfigError
from pollcurl.models import ClientSettings

_APP_NAME = "pollcurl"
_CONFIG_FILENAME = "config.json"

ENV_OVERRIDES: dict[str, str] = {
    "POLLCURL_POLL_INTERVAL_MS": "poll_interval_ms",
    "POLLCURL_TIMEOUT": "default_timeout",
    "POLLCURL_TRANSPORT": "transport",
    "POLLCURL_MAX_WORKERS": "max_workers",
}
"""Environment variables and the settings field each one overrides."""


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/pollcurl/`` (default ``~/.config/pollcurl/``).
    On macOS/Windows: ``~/.pollcurl/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/pollcurl/`` (default ``~/.local/share/pollcurl/``).
    On macOS/Windows: ``~/.pollcurl/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings file ---


def load_settings() -> ClientSettings:
    """Load settings from the config directory.

    Returns:
        The stored :class:`~pollcurl.models.ClientSettings`, or defaults
        when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = settings_path()
    if not path.is_file():
        return ClientSettings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientSettings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: ClientSettings) -> None:
    """Persist *settings* atomically to disk."""
    data = settings.model_dump(mode="json")
    _atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")


def reset_settings() -> None:
    """Delete the settings file so defaults apply again."""
    path = settings_path()
    if path.is_file():
        path.unlink()


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value is None or value == "":
            continue
        if field_name == "default_timeout" and value.lower() in ("none", "off", "0"):
            overrides[field_name] = None
        else:
            overrides[field_name] = value
    return overrides


def resolve_settings(overrides: Optional[dict[str, Any]] = None) -> ClientSettings:
    """Resolve settings with full precedence chain.

    Precedence (high to low):
        1. Explicit *overrides* (``None`` values are ignored)
        2. Environment variables (see :data:`ENV_OVERRIDES`)
        3. Settings file (``~/.config/pollcurl/config.json``)
        4. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    data = load_settings().model_dump()
    data.update(_env_overrides())
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ClientSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
