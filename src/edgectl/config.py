"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for edgectl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.edgectl/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_endpoints_dir`.
* **Global config** -- A single :class:`~edgectl.models.GlobalConfig`
  JSON file storing defaults (output format, request settings, default zone,
  credential sources).
* **Environment** -- a ``.env`` file in the working directory is loaded with
  python-dotenv before anything reads ``os.environ``; see
  :func:`load_env_file`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the global config into the effective
  configuration.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from edgectl.exceptions import ConfigError
from edgectl.models import GlobalConfig

_APP_NAME = "edgectl"
_CONFIG_FILENAME = "config.json"

ENV_API_TOKEN = "CF_API_TOKEN"
ENV_API_KEY = "CF_API_KEY"
ENV_API_EMAIL = "CF_API_EMAIL"
ENV_ZONE_ID = "CF_ZONE_ID"
ENV_ZONE_NAME = "CF_ZONE_NAME"
ENV_ACCOUNT_ID = "CF_ACCOUNT_ID"
ENV_TUNNEL_TOKEN = "CF_TUNNEL_TOKEN"
ENV_OUTPUT_FORMAT = "CF_OUTPUT_FORMAT"
ENV_BASE_URL = "EDGECTL_BASE_URL"

OUTPUT_FORMATS = ("table", "json", "compact")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/edgectl/`` (default ``~/.config/edgectl/``).
    On macOS/Windows: ``~/.edgectl/``.

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
    """Return the data directory (crash logs, tunnel state), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/edgectl/`` (default ``~/.local/share/edgectl/``).
    On macOS/Windows: ``~/.edgectl/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_endpoints_dir() -> Path:
    """Return ``<config_dir>/endpoints/``. The directory is not created."""
    return get_config_dir() / "endpoints"


def get_tunnel_state_path() -> Path:
    """Return the file the tunnel supervisor persists its state to."""
    return get_data_dir() / "tunnel.json"


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.
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
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Environment ---


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load ``KEY=value`` pairs from a ``.env`` file into ``os.environ``.

    Variables already present in the environment win over the file.

    Args:
        path: The file to read. Defaults to ``./.env``.

    Returns:
        ``True`` if a file was found and loaded.
    """
    env_path = path if path is not None else Path.cwd() / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(dotenv_path=env_path, override=False)


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~edgectl.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


def delete_global_config() -> bool:
    """Remove the global config file. Returns ``True`` if one existed."""
    path = _global_config_path()
    if not path.is_file():
        return False
    path.unlink()
    return True


# --- Precedence resolution ---


def resolve_config(
    cli_format: Optional[str] = None,
    cli_zone: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_format``, ``cli_zone``)
        2. Environment variables (``CF_OUTPUT_FORMAT``, ``CF_ZONE_ID``,
           ``CF_ZONE_NAME``, ``CF_ACCOUNT_ID``,
           ``EDGECTL_BASE_URL``)
        3. User config (``~/.config/edgectl/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~edgectl.models.GlobalConfig`.

    Raises:
        ConfigError: If the resulting output format is not recognised.
    """
    config = load_global_config()

    env_format = os.environ.get(ENV_OUTPUT_FORMAT)
    if env_format:
        config.output.format = env_format.lower()
    env_zone = os.environ.get(ENV_ZONE_ID) or os.environ.get(ENV_ZONE_NAME)
    if env_zone:
        config.default_zone = env_zone
    env_account = os.environ.get(ENV_ACCOUNT_ID)
    if env_account:
        config.default_account = env_account
    env_base_url = os.environ.get(ENV_BASE_URL)
    if env_base_url:
        config.request.base_url = env_base_url.rstrip("/")

    if cli_format is not None:
        config.output.format = cli_format.lower()
    if cli_zone is not None:
        config.default_zone = cli_zone

    if config.output.format not in OUTPUT_FORMATS:
        raise ConfigError(
            f"Unknown output format '{config.output.format}' "
            f"(expected one of: {', '.join(OUTPUT_FORMATS)})"
        )
    return config


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        file_path = source[5:]
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
