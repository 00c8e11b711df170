from __future__ import annotations

import asyncio
import math

import typer
from vmanager_client import ApiError, AuthError, NetworkError
from vmanager_client.resolve import ResolveError, resolve_server

from .. import console
from ..config import load_config
from ..frontend.actions import CONFIRM_FLAG, confirmation_warning, needs_confirmation
from ..http import make_client
from ..protocol import ProtocolError, ServerDescriptor
from ..terminal import servers_table

app = typer.Typer(help="Servers commands (talk to the backend API directly).")


async def _fetch_servers(cfg, base_url: str | None) -> list[dict]:
    async with make_client(cfg, base_url_override=base_url) as client:
        return await client.list_servers()


async def _run_action(cfg, base_url: str | None, verb: str, name: str, *, confirmed: bool) -> str | None:
    async with make_client(cfg, base_url_override=base_url) as client:
        target = await resolve_server(client, name)
        port = target.get("port")
        if not isinstance(port, int):
            # an unknown port could be the connection port
            port = cfg.frontend.connection_port
        if needs_confirmation(verb, port, cfg.frontend.connection_port, confirmed=confirmed):
            return None
        return await client.server_action(
            verb,
            server_name=str(target.get("name")),
            server_version=target.get("serverVersion"),
            server_type=target.get("softwareType"),
        )


def _exit_on_api_error(e: Exception, what: str) -> None:
    if isinstance(e, AuthError):
        console.err("Unauthorized. Check the backend token.")
    elif isinstance(e, NetworkError):
        console.err(f"Backend request failed: {e}")
    else:
        console.err(f"Failed to {what}: {e}")
    raise typer.Exit(code=2)


@app.command("list")
def list_servers(
        page: int = typer.Option(1, "--page", help="Page number (1-based)."),
        page_size: int | None = typer.Option(None, "--page-size", help="Number of servers per page."),
        base_url: str | None = typer.Option(None, "--base-url", help="Override backend base URL."),
        json_out: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    cfg = load_config()
    page_size = page_size or cfg.frontend.page_size
    if page < 1:
        console.err("--page must be >= 1.")
        raise typer.Exit(code=2)
    if page_size < 1:
        console.err("--page-size must be >= 1.")
        raise typer.Exit(code=2)

    try:
        items = asyncio.run(_fetch_servers(cfg, base_url))
    except (ApiError, NetworkError) as e:
        _exit_on_api_error(e, "list servers")

    if json_out:
        console.print_json(items)
        return

    servers = []
    for item in items:
        try:
            servers.append(ServerDescriptor.from_dict(item))
        except ProtocolError as e:
            console.warn(f"Skipping malformed server entry: {e}")

    if not servers:
        console.info("No servers found.")
        return
    pages = max(1, math.ceil(len(servers) / page_size))
    if page > pages:
        console.err(f"Page {page} is out of range (1-{pages}).")
        raise typer.Exit(code=2)
    start = (page - 1) * page_size
    console.console.print(servers_table(servers[start:start + page_size], title="Available Servers"))
    console.info(f"page={page}/{pages} total={len(servers)}")


def _action(verb: str, name: list[str], confirm: bool, base_url: str | None) -> None:
    server_name = " ".join(name).strip()
    if not server_name:
        console.err("Please specify a server name.")
        raise typer.Exit(code=2)
    cfg = load_config()
    console.info(f"Requesting to {verb} server '{server_name}'...")
    try:
        message = asyncio.run(_run_action(cfg, base_url, verb, server_name, confirmed=confirm))
    except ResolveError as e:
        console.err(str(e))
        raise typer.Exit(code=2)
    except (ApiError, NetworkError) as e:
        _exit_on_api_error(e, f"{verb} server")

    if message is None:
        for reply in confirmation_warning(verb, server_name, command="vmanager servers"):
            console.warn(reply.text)
        raise typer.Exit(code=1)
    console.ok(message)


@app.command("start")
def start_server(
        name: list[str] = typer.Argument(..., help="Server name."),
        base_url: str | None = typer.Option(None, "--base-url", help="Override backend base URL."),
):
    _action("start", name, False, base_url)


@app.command("stop")
def stop_server(
        name: list[str] = typer.Argument(..., help="Server name."),
        confirm: bool = typer.Option(False, CONFIRM_FLAG, help="Allow stopping the proxy you are connected to."),
        base_url: str | None = typer.Option(None, "--base-url", help="Override backend base URL."),
):
    _action("stop", name, confirm, base_url)


@app.command("restart")
def restart_server(
        name: list[str] = typer.Argument(..., help="Server name."),
        confirm: bool = typer.Option(False, CONFIRM_FLAG, help="Allow restarting the proxy you are connected to."),
        base_url: str | None = typer.Option(None, "--base-url", help="Override backend base URL."),
):
    _action("restart", name, confirm, base_url)
