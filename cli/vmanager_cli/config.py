from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from typing import Any

import tomli_w
from platformdirs import user_config_dir

from . import console

APP_NAME = "vmanager"
CONFIG_FILENAME = "config.toml"
BASE_URL_DEFAULT = "http://127.0.0.1:3005/api"
ENV_BASE_URL = "VMANAGER_BASE_URL"
ENV_TOKEN = "VMANAGER_TOKEN"

_WARNED_BASE_URL_SCHEME = False


@dataclass
class BackendConfig:
    base_url: str = BASE_URL_DEFAULT
    token: str = ""
    timeout_s: float = 15.0


@dataclass
class ChannelConfig:
    host: str = "127.0.0.1"
    port: int = 25590


@dataclass
class FrontendConfig:
    page_size: int = 28
    wizard_flow: str = "full"
    connection_port: int | None = 25565
    session_ttl_s: float = 600.0
    cache_ttl_s: float = 900.0


@dataclass
class AppConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    frontend: FrontendConfig = field(default_factory=FrontendConfig)


def config_path() -> str:
    return f"{user_config_dir(APP_NAME)}/{CONFIG_FILENAME}"


def default_config() -> AppConfig:
    return AppConfig()


def normalize_base_url(raw: str | None, *, warn: bool = False) -> str:
    value = (raw or "").strip()
    if not value:
        return ""
    value = value.rstrip("/")
    lowered = value.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return value

    host = value.split("/", 1)[0]
    host = host.split(":", 1)[0].lower()
    if host in {"localhost", "127.0.0.1", "0.0.0.0"}:
        scheme = "http://"
    else:
        scheme = "https://"

    normalized = f"{scheme}{value}"
    if warn:
        _warn_missing_scheme(normalized)
    return normalized


def _warn_missing_scheme(normalized: str) -> None:
    global _WARNED_BASE_URL_SCHEME
    if _WARNED_BASE_URL_SCHEME:
        return
    if not _is_interactive():
        return
    console.warn(f"base_url missing scheme, assuming {normalized}")
    _WARNED_BASE_URL_SCHEME = True


def _is_interactive() -> bool:
    import sys
    return bool(sys.stderr.isatty() or sys.stdout.isatty())


def ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


def to_toml(cfg: AppConfig) -> dict[str, Any]:
    return _prune_none(
        {
            "backend": {
                "base_url": cfg.backend.base_url,
                "token": cfg.backend.token,
                "timeout_s": cfg.backend.timeout_s,
            },
            "channel": {
                "host": cfg.channel.host,
                "port": cfg.channel.port,
            },
            "frontend": {
                "page_size": cfg.frontend.page_size,
                "wizard_flow": cfg.frontend.wizard_flow,
                "connection_port": cfg.frontend.connection_port,
                "session_ttl_s": cfg.frontend.session_ttl_s,
                "cache_ttl_s": cfg.frontend.cache_ttl_s,
            },
        }
    )


def _prune_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _prune_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_prune_none(item) for item in value if item is not None]
    return value


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    raw = data.get(name)
    return raw if isinstance(raw, dict) else {}


def _int(value: Any, default: int | None) -> int | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def from_toml(data: dict[str, Any]) -> AppConfig:
    cfg = default_config()

    backend = _section(data, "backend")
    base_url = normalize_base_url(str(backend.get("base_url") or ""), warn=True)
    cfg.backend.base_url = base_url or BASE_URL_DEFAULT
    cfg.backend.token = str(backend.get("token") or "")
    cfg.backend.timeout_s = _float(backend.get("timeout_s"), cfg.backend.timeout_s)

    channel = _section(data, "channel")
    cfg.channel.host = str(channel.get("host") or cfg.channel.host)
    cfg.channel.port = _int(channel.get("port"), cfg.channel.port) or cfg.channel.port

    frontend = _section(data, "frontend")
    page_size = _int(frontend.get("page_size"), cfg.frontend.page_size)
    cfg.frontend.page_size = page_size if page_size and page_size > 0 else cfg.frontend.page_size
    cfg.frontend.wizard_flow = str(frontend.get("wizard_flow") or cfg.frontend.wizard_flow).strip().lower()
    if "connection_port" in frontend:
        cfg.frontend.connection_port = _int(frontend.get("connection_port"), None)
    cfg.frontend.session_ttl_s = _float(frontend.get("session_ttl_s"), cfg.frontend.session_ttl_s)
    cfg.frontend.cache_ttl_s = _float(frontend.get("cache_ttl_s"), cfg.frontend.cache_ttl_s)
    return cfg


def load_file_config() -> AppConfig:
    """Config as stored on disk, without environment overrides."""
    path = config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return default_config()
    return from_toml(data)


def load_config() -> AppConfig:
    return apply_env(load_file_config())


def apply_env(cfg: AppConfig) -> AppConfig:
    env_url = os.getenv(ENV_BASE_URL, "").strip()
    if env_url:
        cfg.backend.base_url = normalize_base_url(env_url)
    env_token = os.getenv(ENV_TOKEN, "").strip()
    if env_token:
        cfg.backend.token = env_token
    return cfg


def resolve_base_url(cfg: AppConfig, override: str | None = None) -> str:
    if override:
        return normalize_base_url(override, warn=True)
    return normalize_base_url(cfg.backend.base_url) or BASE_URL_DEFAULT


def save_config(cfg: AppConfig) -> str:
    path = config_path()
    ensure_parent_dir(path)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path
