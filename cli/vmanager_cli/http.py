from __future__ import annotations

from vmanager_client import VManagerClient
from vmanager_client.config_types import ClientConfig

from . import __version__
from .config import AppConfig, resolve_base_url


def make_client(cfg: AppConfig, *, base_url_override: str | None = None) -> VManagerClient:
    return VManagerClient(
        ClientConfig(
            base_url=resolve_base_url(cfg, base_url_override),
            token=cfg.backend.token or None,
            timeout_s=cfg.backend.timeout_s,
            client_version=__version__,
        )
    )
