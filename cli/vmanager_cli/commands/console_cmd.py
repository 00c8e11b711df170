from __future__ import annotations

import asyncio
from dataclasses import dataclass

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.patch_stdout import patch_stdout

from .. import console
from ..channel import Channel, open_channel
from ..config import AppConfig, load_config
from ..frontend.actions import CONFIRM_FLAG, LIFECYCLE_VERBS, ActionDispatcher, UiAction
from ..frontend.cache import ServerListCaches
from ..frontend.host import FrontendHost, View
from ..frontend.wizard import WizardFlow, WizardSessions
from ..terminal import TerminalView

SLASH_COMMANDS = [
    "/servers",
    "/page",
    "/select",
    "/start",
    "/stop",
    "/restart",
    "/back",
    "/create",
    "/close",
    "/help",
    "/quit",
]

HELP_TEXT = """\
/servers                         fetch and show the server list
/page <n>                        show page n of the cached list
/select <name>                   show one server
/start|stop|restart <name> [--confirm]
/back                            refresh the server list
/create                          start the server creation wizard
/close                           close the current view
/quit                            leave
Any other line answers the creation wizard ('cancel' aborts it)."""


@dataclass(frozen=True)
class ConsoleCommand:
    kind: str
    action: UiAction | None = None
    text: str = ""


def parse_console_line(line: str) -> ConsoleCommand:
    text = line.strip()
    if not text.startswith("/"):
        return ConsoleCommand("chat", text=line)

    parts = text[1:].split()
    if not parts:
        return ConsoleCommand("unknown", text=text)
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "servers":
        return ConsoleCommand("open")
    if cmd in ("quit", "exit"):
        return ConsoleCommand("quit")
    if cmd == "help":
        return ConsoleCommand("help")
    if cmd == "create":
        return ConsoleCommand("action", UiAction("create_server"))
    if cmd in ("back", "close"):
        return ConsoleCommand("action", UiAction(cmd))
    if cmd == "page":
        if len(args) != 1 or not args[0].isdigit():
            return ConsoleCommand("usage", text="Usage: /page <n>")
        return ConsoleCommand("action", UiAction("next_page", page=int(args[0])))
    if cmd == "select":
        if not args:
            return ConsoleCommand("usage", text="Usage: /select <name>")
        return ConsoleCommand("action", UiAction("select", server_name=" ".join(args)))
    if cmd in LIFECYCLE_VERBS:
        confirmed = bool(args) and args[-1].lower() == CONFIRM_FLAG
        name_parts = args[:-1] if confirmed else args
        if not name_parts:
            return ConsoleCommand("usage", text=f"Usage: /{cmd} <name> [{CONFIRM_FLAG}]")
        return ConsoleCommand("action", UiAction(cmd, server_name=" ".join(name_parts), confirmed=confirmed))
    return ConsoleCommand("unknown", text=text)


def build_frontend(cfg: AppConfig, channel: Channel, view: View) -> FrontendHost:
    caches = ServerListCaches(page_size=cfg.frontend.page_size, ttl_s=cfg.frontend.cache_ttl_s)
    wizards = WizardSessions(
        flow=WizardFlow.parse(cfg.frontend.wizard_flow),
        ttl_s=cfg.frontend.session_ttl_s,
    )
    actions = ActionDispatcher(caches, connection_port=cfg.frontend.connection_port)
    return FrontendHost(channel, view, caches=caches, wizards=wizards, actions=actions)


async def run_line(frontend: FrontendHost, user: str, line: str) -> bool:
    """Handle one console line. Returns False when the user asked to quit."""
    command = parse_console_line(line)
    if command.kind == "quit":
        return False
    if command.kind == "open":
        await frontend.open_manager(user)
    elif command.kind == "action":
        await frontend.click(user, command.action)
    elif command.kind == "help":
        console.print(HELP_TEXT)
    elif command.kind == "usage":
        console.err(command.text)
    elif command.kind == "unknown":
        console.err(f"Unknown command: {command.text}. Type /help.")
    elif command.text.strip():
        if not await frontend.chat(user, command.text):
            console.info("Nothing is waiting for input. Type /help for commands.")
    return True


async def _run_console(cfg: AppConfig, user: str, host: str, port: int) -> None:
    channel = await open_channel(host, port)
    frontend = build_frontend(cfg, channel, TerminalView())
    reader = asyncio.create_task(channel.run(frontend.handle))
    session: PromptSession = PromptSession(completer=WordCompleter(SLASH_COMMANDS, sentence=True))
    try:
        with patch_stdout():
            await frontend.open_manager(user)
            while not reader.done():
                try:
                    line = await session.prompt_async(f"{user}> ")
                except (EOFError, KeyboardInterrupt):
                    break
                if not await run_line(frontend, user, line):
                    break
        if reader.done():
            console.warn("Proxy closed the channel.")
    finally:
        frontend.end_session(user)
        reader.cancel()
        await asyncio.gather(reader, return_exceptions=True)
        await channel.close()


def console_command(
        user: str = typer.Option(..., "--user", "-u", help="User id to act as on the channel."),
        host: str | None = typer.Option(None, "--host", help="Proxy channel host."),
        port: int | None = typer.Option(None, "--port", help="Proxy channel port."),
):
    """Run an interactive front-end connected to a proxy."""
    cfg = load_config()
    host = host or cfg.channel.host
    port = port or cfg.channel.port
    try:
        asyncio.run(_run_console(cfg, user, host, port))
    except OSError as e:
        console.err(f"Could not connect to proxy at {host}:{port}: {e}")
        raise typer.Exit(code=2)
