from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from .config_types import ClientConfig
from .errors import ApiError
from .transport import Transport

SERVER_ACTIONS = ("start", "stop", "restart")


class VManagerClient:
    """Async client for the server-management backend API."""

    def __init__(self, cfg: ClientConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self._t = Transport(cfg, transport=transport)

    async def __aenter__(self) -> "VManagerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._t.aclose()

    @staticmethod
    def _message_from(data: Any, path: str) -> str:
        if isinstance(data, dict):
            message = data.get("message")
            if isinstance(message, str):
                return message
        raise ApiError(502, f"Failed to parse response from {path}: {str(data)[:200]}", None)

    # --- servers ---
    async def list_servers(self) -> list[dict[str, Any]]:
        data = await self._t.request("GET", "/minecraft/servers")
        if isinstance(data, dict) and isinstance(data.get("items"), list):
            data = data["items"]
        if not isinstance(data, list):
            raise ApiError(502, f"Failed to parse response: {str(data)[:200]}", None)
        return [item for item in data if isinstance(item, dict)]

    async def server_action(
            self,
            action: str,
            *,
            server_name: str,
            server_version: str | None = None,
            server_type: str | None = None,
    ) -> str:
        action = (action or "").strip().lower()
        if action not in SERVER_ACTIONS:
            raise ValueError(f"Unsupported server action: {action}")
        body = {
            "serverName": server_name,
            "serverVersion": server_version,
            "serverType": server_type,
        }
        path = f"/minecraft/{action}"
        data = await self._t.request("POST", path, json_body=body)
        return self._message_from(data, path)

    async def create_server(self, payload: dict[str, Any]) -> str:
        path = "/minecraft/servers"
        data = await self._t.request("POST", path, json_body=payload)
        return self._message_from(data, path)

    # --- PaperMC catalog (proxied by the backend) ---
    async def papermc_project(self, project: str) -> dict[str, Any]:
        data = await self._t.request("GET", f"/papermc/versions/{quote(project, safe='')}")
        return data if isinstance(data, dict) else {"raw": data}

    async def papermc_builds(self, project: str, version: str) -> dict[str, Any]:
        path = f"/papermc/builds/{quote(project, safe='')}/{quote(version, safe='')}"
        data = await self._t.request("GET", path)
        return data if isinstance(data, dict) else {"raw": data}
