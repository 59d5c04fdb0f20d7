"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for presscache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.presscache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_profiles_dir`.
* **Global config** -- a single :class:`~presscache.models.GlobalConfig`
  JSON file storing defaults (output format, sync tuning, default site).
* **Site profiles** -- one JSON file per site, each deserialised into a
  :class:`~presscache.models.SiteProfile`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config.
* **Credential resolution** -- :func:`resolve_credential` reads the
  application password from an env var, a file, or an interactive prompt.

All file writes go through :func:`atomic_write`, which the cache store also
uses for the replica and its metadata sidecar.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from presscache.exceptions import ConfigError
from presscache.models import GlobalConfig, SiteInfo, SiteProfile, SyncConfig

_APP_NAME = "presscache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "presscache.json"

ENV_PROFILE = "PRESSCACHE_PROFILE"
ENV_SITE = "PRESSCACHE_SITE"
ENV_USER = "PRESSCACHE_USER"
ENV_APP_PASSWORD = "PRESSCACHE_APP_PASSWORD"
ENV_CACHE_PATH = "PRESSCACHE_CACHE_PATH"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms following the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, falling back to segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/presscache/`` (default ``~/.config/presscache/``).
    On macOS/Windows: ``~/.presscache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs, default replicas), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/presscache/`` (default ``~/.local/share/presscache/``).
    On macOS/Windows: ``~/.presscache/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    """Return ``<config_dir>/profiles/``, creating it if necessary."""
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a temp file and rename.

    The temporary file lives in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX. Readers see either the old
    content or the new one, never a truncated file. On any failure the temp
    file is removed and the existing file is left as it was.
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
        fd = None
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


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration, or defaults when no file exists.

    Raises:
        ConfigError: If the file exists but is not valid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Site profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all site profile names, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> SiteProfile:
    """Load and validate a site profile.

    Raises:
        ConfigError: If the profile does not exist, is not valid JSON, or
            fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        return SiteProfile.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: SiteProfile) -> None:
    data = profile.model_dump(mode="json", exclude_none=True)
    atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


def delete_profile(name: str) -> None:
    """Delete a site profile.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./presscache.json`` if present.

    It typically pins ``default_profile`` for a checkout that works against
    one site.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc


# --- Precedence resolution ---


def profile_from_env() -> Optional[SiteProfile]:
    """Build an ad-hoc profile from ``PRESSCACHE_SITE`` / ``_USER`` / ``_APP_PASSWORD``.

    Returns ``None`` unless all three variables are set. The replica path
    comes from ``PRESSCACHE_CACHE_PATH`` or defaults to
    ``<data_dir>/<site>-posts.json``.
    """
    site = os.environ.get(ENV_SITE)
    user = os.environ.get(ENV_USER)
    password = os.environ.get(ENV_APP_PASSWORD)
    if not site or not user or password is None:
        return None
    domain = SiteInfo(domain=site, user=user, app_password="").domain
    cache_path = os.environ.get(ENV_CACHE_PATH) or str(
        get_data_dir() / f"{domain.replace('/', '_')}-posts.json"
    )
    return SiteProfile(
        name="env",
        domain=domain,
        user=user,
        credential_source=f"env:{ENV_APP_PASSWORD}",
        cache_path=cache_path,
    )


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[SiteProfile]]:
    """Resolve the active configuration.

    Precedence (high to low):
        1. CLI flags (``cli_profile``, ``cli_format``)
        2. Environment (``PRESSCACHE_PROFILE``, then the ``PRESSCACHE_SITE`` trio)
        3. Project config (``./presscache.json``)
        4. User config (``~/.config/presscache/config.json``)
        5. Defaults

    Returns:
        A tuple of ``(global_config, active_profile_or_None)``.
    """
    global_cfg = load_global_config()

    resolved_name: Optional[str] = global_cfg.default_profile
    project = load_project_config()
    if project is not None and project.get("default_profile"):
        resolved_name = project["default_profile"]

    env_profile = os.environ.get(ENV_PROFILE)
    if env_profile:
        resolved_name = env_profile
    if cli_profile is not None:
        resolved_name = cli_profile

    profile: Optional[SiteProfile] = None
    if resolved_name is not None:
        profile = load_profile(resolved_name)
    else:
        profile = profile_from_env()
        if profile is None and global_cfg.auto_select_single_profile:
            names = list_profiles()
            if len(names) == 1:
                profile = load_profile(names[0])

    if cli_format is not None:
        global_cfg.output.format = cli_format

    return global_cfg, profile


def effective_sync_config(global_cfg: GlobalConfig, profile: SiteProfile) -> SyncConfig:
    """Profile-level sync settings win over the global ones."""
    return profile.sync if profile.sync is not None else global_cfg.sync


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve an application password from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads the file, stripped of whitespace
        - ``"prompt"`` -- asks interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set (source: {source})")
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY (source: prompt)")
        return getpass.getpass("Application password: ")

    raise ConfigError(f"Unknown credential source format: {source}")


def site_info_for(profile: SiteProfile) -> SiteInfo:
    """Resolve the profile's credential and return the connection details."""
    return SiteInfo(
        domain=profile.domain,
        user=profile.user,
        app_password=resolve_credential(profile.credential_source),
    )
