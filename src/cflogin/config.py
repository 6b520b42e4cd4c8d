"""Configuration management with XDG paths, atomic writes, and login contexts.

This module handles all persistent, non-secret state for cflogin:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cflogin/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Config file** -- A single :class:`~cflogin.models.GlobalConfig` JSON
  file holding every login context and the name of the current one.
* **Context naming** -- :func:`context_name_for`, :func:`credential_name_for`
  and :func:`platform_name_for` derive the deterministic names shared by
  the config file and the netrc machine names.
* **Netrc location** -- :func:`get_netrc_path` honours ``CFLOGIN_NETRC``
  before falling back to the per-user default.

Secrets never go into the config file; they live in the netrc file managed
by :mod:`cflogin.auth.netrc`. All file writes use an atomic
temp-file-then-rename strategy (:func:`atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from cflogin.exceptions import ConfigError, NotFoundError
from cflogin.models import Context, GlobalConfig

_APP_NAME = "cflogin"
_CONFIG_FILENAME = "config.json"

NETRC_ENV_VAR = "CFLOGIN_NETRC"
DEFAULT_CLOUD_URL = "https://confluent.cloud"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/cflogin/`` (default ``~/.config/cflogin/``).
    On macOS/Windows: ``~/.cflogin/``.

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

    On Linux/BSD: ``$XDG_DATA_HOME/cflogin/`` (default ``~/.local/share/cflogin/``).
    On macOS/Windows: ``~/.cflogin/logs/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_netrc_path() -> Path:
    """Return the netrc file used to persist login credentials.

    ``$CFLOGIN_NETRC`` wins when set; otherwise ``~/.netrc`` (``~/_netrc``
    on Windows). A leading ``~`` is expanded. The file itself may not exist
    yet.
    """
    env_value = os.environ.get(NETRC_ENV_VAR, "")
    if env_value:
        return Path(env_value).expanduser()
    filename = "_netrc" if platform.system() == "Windows" else ".netrc"
    return Path.home() / filename


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    When *mode* is given the temp file is chmod-ed before any content is
    written, so secrets are never readable by others, even momentarily.
    On any failure the temp file is cleaned up.
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
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
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


# --- Config file ---


def _config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> GlobalConfig:
    """Load the configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~cflogin.models.GlobalConfig`. If the
        file does not exist, an empty instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: GlobalConfig) -> None:
    """Persist the configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _write_json(_config_path(), data)


def _write_json(path: Path, data: dict) -> None:
    atomic_write(path, json.dumps(data, indent=2) + "\n")


# --- Context naming ---


def context_name_for(username: str, url: str) -> str:
    """Return the context name for *username* logged in to *url*.

    Example::

        >>> context_name_for("a@b.com", "https://confluent.cloud")
        'login-a@b.com-https://confluent.cloud'
    """
    return f"login-{username}-{url}"


def credential_name_for(username: str) -> str:
    return f"username-{username}"


def platform_name_for(url: str) -> str:
    """Strip the ``https://`` scheme from *url*."""
    return url.removeprefix("https://")


def require_context(config: GlobalConfig, name: Optional[str] = None) -> Context:
    """Return the named context, or the current one when *name* is omitted.

    Raises:
        NotFoundError: If no such context exists, or none is current.
    """
    if name is None:
        context = config.get_current_context()
        if context is None:
            raise NotFoundError("no context selected; run `cflogin auth login` first")
        return context
    context = config.contexts.get(name)
    if context is None:
        raise NotFoundError(f"context '{name}' does not exist")
    return context
