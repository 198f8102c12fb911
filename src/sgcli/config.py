"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for sgcli:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.sgcli/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **maFiles location** -- :func:`resolve_mafiles_dir` merges the CLI flag,
  the ``SGCLI_MAFILES`` environment variable, and the default directory.
* **Passkey resolution** -- :func:`resolve_passkey` reads the passkey from
  the CLI flag or ``SGCLI_PASSKEY``.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash mid-save never leaves a half-written
manifest or account file behind.
"""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from sgcli.exceptions import ConfigError

_APP_NAME = "sgcli"
_MAFILES_DIRNAME = "maFiles"
MANIFEST_FILENAME = "manifest.json"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/sgcli/`` (default ``~/.config/sgcli/``).
    On macOS/Windows: ``~/.sgcli/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/sgcli/`` (default ``~/.local/share/sgcli/``).
    On macOS/Windows: ``~/.sgcli/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_default_mafiles_dir() -> Path:
    """Return ``<config_dir>/maFiles/``. The directory is not created."""
    return get_config_dir() / _MAFILES_DIRNAME


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    Permissions are set to ``0o600`` before any content is written, since
    every file this package writes holds secrets.
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
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Precedence resolution ---


def resolve_mafiles_dir(cli_value: Optional[str] = None) -> Path:
    """Resolve the maFiles directory.

    Precedence (high to low):
        1. CLI flag (``--mafiles``)
        2. Environment variable ``SGCLI_MAFILES``
        3. :func:`get_default_mafiles_dir`

    Raises:
        ConfigError: If the resolved path exists but is not a directory.
    """
    if cli_value:
        path = Path(cli_value).expanduser()
    elif os.environ.get("SGCLI_MAFILES"):
        path = Path(os.environ["SGCLI_MAFILES"]).expanduser()
    else:
        path = get_default_mafiles_dir()

    if path.exists() and not path.is_dir():
        raise ConfigError(f"maFiles path is not a directory: {path}")
    return path


def resolve_passkey(cli_value: Optional[str] = None) -> Optional[str]:
    """Resolve the passkey from the CLI flag, then ``SGCLI_PASSKEY``.

    Returns:
        The passkey, or ``None`` when neither source provides one. An empty
        string counts as "not provided".
    """
    if cli_value:
        return cli_value
    return os.environ.get("SGCLI_PASSKEY") or None
