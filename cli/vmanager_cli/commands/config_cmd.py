from __future__ import annotations

import os

import typer

from .. import console
from ..config import config_path, default_config, load_config, load_file_config, normalize_base_url, save_config
from ..frontend.wizard import WizardFlow

app = typer.Typer(help="Manage local settings (~/.config/vmanager/config.toml).")


@app.command("init")
def init_config(
        force: bool = typer.Option(False, "--force", help="Overwrite existing config."),
        base_url: str = typer.Option(
            ...,
            "--base-url",
            prompt="Backend API base URL",
            help="Backend API base URL like http://127.0.0.1:3005/api",
        ),
):
    path = config_path()
    if os.path.exists(path) and not force:
        console.info(f"Config already exists: {path}")
        console.info("Use --force to overwrite.")
        return

    cfg = default_config()
    cfg.backend.base_url = normalize_base_url(base_url, warn=True)
    if not cfg.backend.base_url:
        console.err("Base URL cannot be empty.")
        raise typer.Exit(code=2)
    saved = save_config(cfg)
    console.ok(f"Config written: {saved}")


@app.command("show")
def show_config():
    cfg = load_config()
    token_state = "(set)" if cfg.backend.token.strip() else "(empty)"
    console.console.print(
        f"base_url={cfg.backend.base_url} token={token_state} timeout_s={cfg.backend.timeout_s}\n"
        f"channel={cfg.channel.host}:{cfg.channel.port}\n"
        f"page_size={cfg.frontend.page_size} wizard_flow={cfg.frontend.wizard_flow} "
        f"connection_port={cfg.frontend.connection_port} "
        f"session_ttl_s={cfg.frontend.session_ttl_s} cache_ttl_s={cfg.frontend.cache_ttl_s}"
    )


@app.command("set")
def set_config(
        base_url: str | None = typer.Option(None, "--base-url", help="Backend API base URL."),
        token: str | None = typer.Option(None, "--token", help="Backend API token."),
        channel_host: str | None = typer.Option(None, "--channel-host", help="Proxy channel host."),
        channel_port: int | None = typer.Option(None, "--channel-port", help="Proxy channel port."),
        page_size: int | None = typer.Option(None, "--page-size", help="Servers per page."),
        wizard_flow: str | None = typer.Option(None, "--wizard-flow", help="Creation wizard flow: full or reduced."),
        connection_port: int | None = typer.Option(
            None, "--connection-port", help="Port of the proxy users are connected through."
        ),
):
    # environment overrides must not end up in the file
    cfg = load_file_config()
    if base_url is not None:
        cfg.backend.base_url = normalize_base_url(base_url, warn=True)
    if token is not None:
        cfg.backend.token = token.strip()
    if channel_host is not None:
        cfg.channel.host = channel_host.strip()
    if channel_port is not None:
        cfg.channel.port = channel_port
    if page_size is not None:
        if page_size < 1:
            console.err("--page-size must be >= 1.")
            raise typer.Exit(code=2)
        cfg.frontend.page_size = page_size
    if wizard_flow is not None:
        try:
            cfg.frontend.wizard_flow = WizardFlow.parse(wizard_flow).value
        except ValueError as e:
            console.err(str(e))
            raise typer.Exit(code=2)
    if connection_port is not None:
        cfg.frontend.connection_port = connection_port
    saved = save_config(cfg)
    console.ok(f"Settings updated: {saved}")
