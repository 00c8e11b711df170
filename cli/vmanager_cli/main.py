from __future__ import annotations

import typer

from . import __version__, console
from .commands import config_cmd, console_cmd
from .commands.proxy_cmd import app as proxy_app
from .commands.servers_cmd import app as servers_app
from .logging_ import setup_logging


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="vmanager",
        help="vmanager CLI: manage Minecraft servers through a proxy or the backend API",
        no_args_is_help=True,
    )

    app.add_typer(proxy_app, name="proxy")
    app.add_typer(servers_app, name="servers")
    app.add_typer(config_cmd.app, name="config")
    app.command("console")(console_cmd.console_command)

    @app.command("version")
    def version():
        console.print(__version__)

    @app.callback()
    def _main(
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
    ):
        setup_logging(verbose)

    return app


app = _build_app()
