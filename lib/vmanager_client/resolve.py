from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ResolveError(ValueError):
    message: str

    def __str__(self) -> str:
        return self.message


def match_server_by_name(items: list[dict[str, Any]], name: str) -> dict[str, Any] | None:
    """First server whose name equals ``name`` ignoring case, in list order."""
    wanted = str(name or "").strip().lower()
    if not wanted:
        return None
    return next(
        (s for s in items or [] if str(s.get("name") or "").strip().lower() == wanted),
        None,
    )


async def find_server_by_name(client, name: str) -> dict[str, Any] | None:
    items = await client.list_servers()
    return match_server_by_name(items, name)


async def resolve_server(client, name: str) -> dict[str, Any]:
    value = str(name or "").strip()
    if not value:
        raise ResolveError("Server name is required.")
    server = await find_server_by_name(client, value)
    if server is None:
        raise ResolveError(f"Server '{value}' not found.")
    return server
