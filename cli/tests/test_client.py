from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from vmanager_client import ApiError, AuthError, NetworkError, VManagerClient
from vmanager_client.catalog import extract_builds, list_builds, list_versions, project_for
from vmanager_client.config_types import ClientConfig
from vmanager_client.resolve import ResolveError, match_server_by_name, resolve_server


def _client(handler) -> VManagerClient:  # noqa: ANN001
    cfg = ClientConfig(base_url="http://backend.test/api/", token="secret", client_version="0.1.0")
    return VManagerClient(cfg, transport=httpx.MockTransport(handler))


def _call(handler, fn):  # noqa: ANN001
    async def _run():
        async with _client(handler) as client:
            return await fn(client)

    return asyncio.run(_run())


def test_list_servers_sends_token_and_reads_list() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"name": "lobby", "port": 25566}, "junk"])

    items = _call(handler, lambda c: c.list_servers())
    assert items == [{"name": "lobby", "port": 25566}]
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/api/minecraft/servers"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert seen[0].headers["X-Client-Version"] == "0.1.0"


def test_list_servers_accepts_items_envelope() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": [{"name": "lobby"}]})

    assert _call(handler, lambda c: c.list_servers()) == [{"name": "lobby"}]


def test_list_servers_rejects_unexpected_shape() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"servers": []})

    with pytest.raises(ApiError) as exc:
        _call(handler, lambda c: c.list_servers())
    assert exc.value.status_code == 502


def test_server_action_posts_descriptor_fields() -> None:
    bodies: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"message": "Server lobby stopped"})

    message = _call(
        handler,
        lambda c: c.server_action("Stop", server_name="lobby", server_version="1.20.4", server_type="PaperMC"),
    )
    assert message == "Server lobby stopped"
    assert bodies == [
        (
            "/api/minecraft/stop",
            {"serverName": "lobby", "serverVersion": "1.20.4", "serverType": "PaperMC"},
        )
    ]


def test_server_action_rejects_unknown_verb() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ValueError):
        _call(handler, lambda c: c.server_action("explode", server_name="lobby"))


def test_error_message_comes_from_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "Port 25570 is already used"})

    with pytest.raises(ApiError) as exc:
        _call(handler, lambda c: c.create_server({"serverName": "hub"}))
    assert str(exc.value) == "Port 25570 is already used"
    assert exc.value.status_code == 409


def test_unauthorized_raises_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"detail": "bad token"})

    with pytest.raises(AuthError):
        _call(handler, lambda c: c.list_servers())


def test_network_failure_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        _call(handler, lambda c: c.list_servers())


def test_missing_message_is_an_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="ok")

    with pytest.raises(ApiError):
        _call(handler, lambda c: c.create_server({"serverName": "hub"}))


def test_catalog_paths_and_parsing() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if "/builds/" in request.url.path:
            return httpx.Response(200, json={"builds": [{"build": 10}, 11, True, "x", {"build": "12"}]})
        return httpx.Response(200, json={"project_id": "velocity", "versions": ["3.2.0", "3.3.0"]})

    versions = _call(handler, lambda c: list_versions(c, "Velocity"))
    builds = _call(handler, lambda c: list_builds(c, "PaperMC", "1.21"))
    assert versions == ["3.2.0", "3.3.0"]
    assert builds == [10, 11, 12]
    assert paths == ["/api/papermc/versions/velocity", "/api/papermc/builds/paper/1.21"]


def test_catalog_rejects_unknown_software() -> None:
    with pytest.raises(ValueError):
        project_for("Forge")
    with pytest.raises(ApiError):
        extract_builds({"nothing": []})


def test_match_server_by_name_ignores_case() -> None:
    items = [{"name": "Lobby", "port": 1}, {"name": "lobby", "port": 2}]
    assert match_server_by_name(items, "LOBBY") == {"name": "Lobby", "port": 1}
    assert match_server_by_name(items, "") is None


def test_resolve_server_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"name": "lobby"}])

    with pytest.raises(ResolveError) as exc:
        _call(handler, lambda c: resolve_server(c, "ghost"))
    assert str(exc.value) == "Server 'ghost' not found."
