from __future__ import annotations

import asyncio

import typer

from .. import console
from ..channel import serve_channel
from ..config import AppConfig, load_config, resolve_base_url
from ..http import make_client
from ..logging_ import enable_service_logging
from ..proxy import ProxyDispatcher

app = typer.Typer(help="Proxy host: answers front-end requests from the backend API.")


async def _serve(cfg: AppConfig, host: str, port: int, base_url: str | None) -> None:
    async with make_client(cfg, base_url_override=base_url) as client:
        dispatcher = ProxyDispatcher(client)
        server = await serve_channel(dispatcher.handle, host, port)
        console.ok(f"Listening on {host}:{port}, backend {resolve_base_url(cfg, base_url)}")
        async with server:
            try:
                await server.serve_forever()
            finally:
                await dispatcher.drain()


@app.command("serve")
def serve(
        host: str | None = typer.Option(None, "--host", help="Address to listen on."),
        port: int | None = typer.Option(None, "--port", help="Port to listen on."),
        base_url: str | None = typer.Option(None, "--base-url", help="Override backend base URL."),
):
    cfg = load_config()
    host = host or cfg.channel.host
    port = port or cfg.channel.port
    enable_service_logging()
    try:
        asyncio.run(_serve(cfg, host, port, base_url))
    except KeyboardInterrupt:
        console.info("Stopped.")
    except OSError as e:
        console.err(f"Could not listen on {host}:{port}: {e}")
        raise typer.Exit(code=2)
