from __future__ import annotations

import json
from typing import Any

import httpx

from .errors import ApiError, AuthError, NetworkError
from .config_types import ClientConfig


class Transport:
    def __init__(self, cfg: ClientConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self._cfg = cfg
        headers = {"User-Agent": "vmanager-client/0.1.0", "Accept": "application/json"}
        if cfg.token:
            headers["Authorization"] = f"Bearer {cfg.token}"
        if cfg.client_version:
            headers["X-Client-Version"] = cfg.client_version

        self._client = httpx.AsyncClient(
            base_url=cfg.base_url.rstrip("/"),
            timeout=cfg.timeout_s,
            headers=headers,
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, *, json_body: Any | None = None) -> Any:
        try:
            r = await self._client.request(method, path, json=json_body)
        except httpx.RequestError as e:
            raise NetworkError(str(e) or e.__class__.__name__) from e

        # Try parse body as json for better errors / output
        data: Any = None
        text = None
        try:
            data = r.json()
        except ValueError:
            text = r.text

        if r.status_code >= 400:
            msg = f"{method} {path} failed with {r.status_code}"
            details = None

            if isinstance(data, dict) and ("message" in data or "detail" in data):
                details = json.dumps(data, ensure_ascii=False)
                msg = str(data.get("message") or data.get("detail") or msg)
            elif text:
                details = text[:1000]
                msg = f"Request failed with code {r.status_code}: {text[:200]}"

            if r.status_code in (401, 403):
                raise AuthError(r.status_code, msg, details)
            raise ApiError(r.status_code, msg, details)

        return data if data is not None else r.text
