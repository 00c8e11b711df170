from __future__ import annotations

from typing import Iterable

from rich.markup import escape
from rich.table import Table

from . import console
from .frontend.actions import available_actions
from .frontend.cache import Page
from .frontend.effects import ERROR, OK, PROMPT, WARN, Reply
from .protocol import ServerDescriptor, ServerStatus

STATUS_STYLES = {
    ServerStatus.ONLINE: "green",
    ServerStatus.OFFLINE: "red",
    ServerStatus.STARTING: "yellow",
    ServerStatus.RESTARTING: "dark_orange",
    ServerStatus.STOPPING: "dark_orange",
    ServerStatus.UNKNOWN: "grey50",
}


def status_text(server: ServerDescriptor) -> str:
    style = STATUS_STYLES[server.state]
    return f"[{style}]{escape(server.status)}[/]"


def servers_table(servers: Iterable[ServerDescriptor], *, title: str = "Servers") -> Table:
    table = Table(title=title)
    table.add_column("name", style="bold")
    table.add_column("status", no_wrap=True)
    table.add_column("type")
    table.add_column("address", no_wrap=True)
    for s in servers:
        table.add_row(
            escape(s.name),
            status_text(s),
            escape(f"{s.software_type} {s.software_version}".strip() or "-"),
            escape(f"{s.ip}:{s.port}"),
        )
    return table


class TerminalView:
    """Renders front-end effects for a single terminal user."""

    def reply(self, user: str, reply: Reply) -> None:
        if reply.level == ERROR:
            console.err(reply.text)
        elif reply.level == WARN:
            console.warn(reply.text)
        elif reply.level == OK:
            console.ok(reply.text)
        elif reply.level == PROMPT:
            console.print(f"[bold gold1]{escape(reply.text)}[/]")
        else:
            console.info(reply.text)

    def show_page(self, user: str, page: Page) -> None:
        title = f"Server Management (page {page.number + 1}/{page.page_count})"
        console.print(servers_table(page.items, title=title))
        if not page.items:
            console.info("No servers found.")
        nav = []
        if page.has_previous:
            nav.append(f"/page {page.number - 1} (previous)")
        if page.has_next:
            nav.append(f"/page {page.number + 1} (next)")
        nav.append("/select <name>")
        nav.append("/create")
        nav.append("/close")
        console.info("  ".join(nav))

    def show_server(self, user: str, server: ServerDescriptor) -> None:
        console.print(f"[bold cyan]Manage Server: {escape(server.name)}[/]")
        console.print(f"Status: {status_text(server)}")
        console.print(f"Type: {escape(server.software_type)}")
        console.print(f"Version: {escape(server.software_version)}")
        console.print(f"Address: {escape(server.ip)}:{server.port}")
        offered = [f"/{verb} {server.name}" for verb, ok in available_actions(server).items() if ok]
        offered.append("/back")
        console.info("  ".join(offered))

    def close(self, user: str) -> None:
        console.info("Closed.")
