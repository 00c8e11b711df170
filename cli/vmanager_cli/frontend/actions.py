from __future__ import annotations

from dataclasses import dataclass

from ..protocol import ActionRequest, GetServers, ServerDescriptor, ServerStatus
from .cache import PageOutOfRange, ServerListCaches
from .effects import ERROR, INFO, WARN, CloseView, Effect, Reply, Send, ShowPage, ShowServer, StartWizard

LIFECYCLE_VERBS = ("start", "stop", "restart")
DISRUPTIVE_VERBS = ("stop", "restart")
CONFIRM_FLAG = "--confirm"


@dataclass(frozen=True)
class UiAction:
    """One click or command from the user.

    ``page`` is the target page for ``next_page``/``prev_page``; ``confirmed``
    marks a stop/restart that the user already confirmed with ``--confirm``.
    """

    verb: str
    server_name: str | None = None
    page: int | None = None
    confirmed: bool = False


def needs_confirmation(verb: str, server_port: int, connection_port: int | None, *, confirmed: bool) -> bool:
    """True when ``verb`` would take down the server the user is connected through."""
    if confirmed or connection_port is None:
        return False
    return verb in DISRUPTIVE_VERBS and server_port == connection_port


def confirmation_warning(verb: str, server_name: str, *, command: str = "/vmanage") -> list[Reply]:
    retry = f"{command} {verb} {server_name} {CONFIRM_FLAG}"
    return [
        Reply(f"Warning: You are trying to {verb} the proxy you are connected to.", WARN),
        Reply(
            f"This will disconnect all players. To proceed, run this command again with {CONFIRM_FLAG} "
            f"at the end: {retry}",
            WARN,
            suggestion=retry,
        ),
    ]


def available_actions(server: ServerDescriptor) -> dict[str, bool]:
    state = server.state
    return {
        "start": state is ServerStatus.OFFLINE,
        "stop": state is ServerStatus.ONLINE,
        "restart": state is ServerStatus.ONLINE,
    }


class ActionDispatcher:
    def __init__(self, caches: ServerListCaches, *, connection_port: int | None = None):
        self.caches = caches
        self.connection_port = connection_port

    def _resolve_target(self, user: str, name: str) -> ServerDescriptor | None:
        cache = self.caches.get(user)
        server = cache.lookup(name)
        if server is not None:
            return server
        # The proxy matches names ignoring case, so the safety check does too.
        lowered = name.lower()
        return next((s for s in cache.servers if s.name.lower() == lowered), None)

    def _unverifiable(self, verb: str, confirmed: bool) -> bool:
        return verb in DISRUPTIVE_VERBS and not confirmed and self.connection_port is not None

    def _open_page(self, user: str, page: int | None) -> list[Effect]:
        cache = self.caches.get(user)
        if cache.is_empty:
            return [Reply("Fetching server list from proxy...", INFO), Send(GetServers())]
        try:
            return [ShowPage(cache.page(page if page is not None else 0))]
        except PageOutOfRange as e:
            return [Reply(str(e), ERROR)]

    def dispatch(self, user: str, action: UiAction) -> list[Effect]:
        verb = (action.verb or "").strip().lower()

        if verb == "close":
            return [CloseView()]
        if verb in ("next_page", "prev_page"):
            if action.page is None:
                return [Reply("A target page is required.", ERROR)]
            return self._open_page(user, action.page)
        if verb == "back":
            return [Send(GetServers())]
        if verb == "create_server":
            return [CloseView(), StartWizard()]

        name = (action.server_name or "").strip()
        if verb == "select":
            server = self.caches.lookup(user, name)
            if server is None:
                return [Reply(f"Server '{name}' not found.", ERROR)]
            return [ShowServer(server)]

        if verb not in LIFECYCLE_VERBS:
            return [Reply(f"Unknown action: {action.verb}", ERROR)]
        if not name:
            return [Reply("Please specify a server name.", ERROR)]

        target = self._resolve_target(user, name)
        if target is None and self._unverifiable(verb, action.confirmed):
            # port unknown until the list is cached
            return [
                Reply(f"Server '{name}' is not in the current list. Refreshing it, try again.", WARN),
                Send(GetServers()),
            ]
        if target is not None and needs_confirmation(
            verb, target.port, self.connection_port, confirmed=action.confirmed
        ):
            return list(confirmation_warning(verb, name))

        return [
            Reply(f"Requesting to {verb} server '{name}'...", INFO),
            Send(ActionRequest(verb, name)),
            CloseView(),
        ]
