from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Iterable, Protocol

from ..channel import Channel
from ..protocol import (
    ActionResponse,
    BuildList,
    CreationResponse,
    GetServers,
    ProtocolError,
    ServerDescriptor,
    ServerList,
    VersionList,
    decode,
    encode,
)
from . import wizard
from .actions import ActionDispatcher, UiAction
from .cache import Page, ServerListCaches
from .effects import (
    ERROR,
    INFO,
    OK,
    CloseView,
    Effect,
    EndSession,
    Reply,
    Send,
    ShowPage,
    ShowServer,
    StartWizard,
)

logger = logging.getLogger(__name__)

MSG_MALFORMED = "Received malformed data from the proxy."
MSG_EXPIRED = "Server creation timed out."


class View(Protocol):
    """What the host needs from the user interface."""

    def reply(self, user: str, reply: Reply) -> None:
        ...

    def show_page(self, user: str, page: Page) -> None:
        ...

    def show_server(self, user: str, server: ServerDescriptor) -> None:
        ...

    def close(self, user: str) -> None:
        ...


class FrontendHost:
    """Front-end side of the channel.

    Inbound responses and local user events for one user are applied under that
    user's lock, in arrival order, so a channel send or a view update from one
    event never interleaves with another event for the same user.
    """

    def __init__(
            self,
            channel: Channel,
            view: View,
            *,
            caches: ServerListCaches,
            wizards: wizard.WizardSessions,
            actions: ActionDispatcher,
    ):
        self.channel = channel
        self.view = view
        self.caches = caches
        self.wizards = wizards
        self.actions = actions
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # --- local events ---
    async def open_manager(self, user: str) -> None:
        self._sweep()
        async with self._locks[user]:
            self.caches.open(user)
            await self._apply(user, [Reply("Fetching server list from proxy...", INFO), Send(GetServers())])

    async def click(self, user: str, action: UiAction) -> None:
        self._sweep()
        async with self._locks[user]:
            await self._apply(user, self.actions.dispatch(user, action))

    async def start_wizard(self, user: str) -> None:
        async with self._locks[user]:
            await self._apply(user, [StartWizard()])

    async def chat(self, user: str, text: str) -> bool:
        """Feed a chat line to the user's wizard. Returns False if no wizard was waiting for it."""
        expired = self._sweep()
        async with self._locks[user]:
            session = self.wizards.get(user)
            if session is None:
                # the line was meant for a wizard that just timed out
                return user in expired
            await self._apply_transition(user, wizard.advance(session, text))
            return True

    def end_session(self, user: str) -> None:
        """Forget everything held for a user who left."""
        self.caches.discard(user)
        self.wizards.end(user)
        self._locks.pop(user, None)

    # --- inbound channel messages ---
    async def handle(self, user: str, payload: bytes, channel: Channel | None = None) -> None:
        self._sweep()
        async with self._locks[user]:
            try:
                message = decode(payload)
            except ProtocolError as e:
                logger.warning("Malformed message for %s: %s", user, e)
                session = self.wizards.get(user)
                if session is not None:
                    await self._apply_transition(user, wizard.abort(session))
                else:
                    await self._apply(user, [Reply(MSG_MALFORMED, ERROR)])
                return

            if message is None:
                logger.debug("Ignoring unknown command for %s: %r", user, payload[:64])
                return
            await self._apply(user, self._on_message(user, message))

    def _on_message(self, user: str, message) -> list[Effect]:
        if isinstance(message, ServerList):
            cache = self.caches.refresh(user, message.servers)
            return [ShowPage(cache.page(0))]

        if isinstance(message, (VersionList, BuildList)):
            session = self.wizards.get(user)
            if session is None:
                logger.debug("Dropping %s for %s: no wizard session", message.command, user)
                return []
            if isinstance(message, VersionList):
                transition = wizard.receive_versions(session, message)
            else:
                transition = wizard.receive_builds(session, message)
            self.wizards.apply(user, transition)
            return list(transition.effects)

        if isinstance(message, ActionResponse):
            return [Reply(message.detail, OK if message.ok else ERROR)]

        if isinstance(message, CreationResponse):
            session = self.wizards.get(user)
            if not message.ok and session is not None and wizard.waiting_for_catalog(session):
                transition = wizard.abort(session, message.detail)
                self.wizards.apply(user, transition)
                return list(transition.effects)
            return [Reply(message.detail, OK if message.ok else ERROR)]

        logger.debug("Ignoring %s for %s: not a response", message.command, user)
        return []

    # --- effects ---
    async def _apply_transition(self, user: str, transition: wizard.Transition) -> None:
        self.wizards.apply(user, transition)
        await self._apply(user, transition.effects)

    async def _apply(self, user: str, effects: Iterable[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Reply):
                self.view.reply(user, effect)
            elif isinstance(effect, Send):
                await self.channel.send(user, encode(effect.message))
            elif isinstance(effect, ShowPage):
                self.view.show_page(user, effect.page)
            elif isinstance(effect, ShowServer):
                self.view.show_server(user, effect.server)
            elif isinstance(effect, CloseView):
                self.view.close(user)
            elif isinstance(effect, StartWizard):
                await self._apply_transition(user, self.wizards.start(user))
            elif isinstance(effect, EndSession):
                self.wizards.end(user)

    def _sweep(self) -> list[str]:
        """Drop expired caches and wizards; returns the users whose wizard expired."""
        self.caches.sweep()
        expired = self.wizards.sweep()
        for user in expired:
            logger.info("Wizard session for %s expired", user)
            self.view.reply(user, Reply(MSG_EXPIRED, ERROR))
        return expired
