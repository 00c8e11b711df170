"""Chat-driven server creation wizard.

The wizard is a pure state machine: every function takes a ``WizardSession``
and returns a ``Transition`` holding the next session and the effects the host
must apply (replies to the user, protocol messages to send, end of session).
Nothing here touches the channel or the session registry.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum

from ..protocol import BuildList, CreateServer, GetBuilds, GetVersions, SoftwareType, VersionList
from ..registry import TTLRegistry
from .effects import ERROR, INFO, PROMPT, Effect, EndSession, Reply, Send

MIN_NAME_LENGTH = 3
MIN_PORT = 1025
MAX_PORT = 65535
LATEST_BUILD = "latest"

MSG_CANCELLED = "Server creation cancelled."
MSG_BAD_DATA = "Failed to process server data. Please try again."


class WizardStep(Enum):
    NAME = "name"
    PORT = "port"
    TYPE = "type"
    VERSION = "version"
    BUILD = "build"
    CONFIRMATION = "confirmation"
    DONE = "done"


class WizardFlow(str, Enum):
    FULL = "full"
    REDUCED = "reduced"  # no BUILD step, the server gets the latest build

    @classmethod
    def parse(cls, value: str | None) -> "WizardFlow":
        try:
            return cls(str(value or cls.FULL.value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown wizard flow: {value}") from None


@dataclass(frozen=True)
class WizardSession:
    flow: WizardFlow = WizardFlow.FULL
    step: WizardStep = WizardStep.NAME
    name: str | None = None
    port: int | None = None
    software: SoftwareType | None = None
    version: str | None = None
    build: str | None = None
    available_versions: tuple[str, ...] = ()
    available_builds: tuple[int, ...] = ()

    @property
    def finished(self) -> bool:
        return self.step is WizardStep.DONE

    def create_payload(self) -> dict[str, str]:
        payload = {
            "serverName": self.name or "",
            "port": str(self.port),
            "serverType": self.software.value if self.software else "",
            "serverVersion": self.version or "",
        }
        build_key = "paperBuild" if self.software is SoftwareType.PAPERMC else "velocityBuild"
        payload[build_key] = self.build or LATEST_BUILD
        return payload


@dataclass(frozen=True)
class Transition:
    session: WizardSession
    effects: tuple[Effect, ...] = ()

    @property
    def ends_session(self) -> bool:
        return any(isinstance(e, EndSession) for e in self.effects)


def _next_step(session: WizardSession) -> WizardStep:
    order = list(WizardStep)
    nxt = order[order.index(session.step) + 1]
    if nxt is WizardStep.BUILD and session.flow is WizardFlow.REDUCED:
        return WizardStep.CONFIRMATION
    return nxt


def _question(session: WizardSession) -> list[Effect]:
    step = session.step
    if step is WizardStep.NAME:
        return [Reply("Enter a name for the new server:", PROMPT)]
    if step is WizardStep.PORT:
        return [Reply(f"Enter a port number ({MIN_PORT}-{MAX_PORT}):", PROMPT)]
    if step is WizardStep.TYPE:
        return [Reply("Enter server type (PaperMC or Velocity):", PROMPT)]
    if step is WizardStep.VERSION:
        return _version_choices(session)
    if step is WizardStep.BUILD:
        return _build_choices(session)
    if step is WizardStep.CONFIRMATION:
        return [Reply("Type 'yes' to create or 'no' to cancel.", PROMPT)]
    return []


def _version_choices(session: WizardSession) -> list[Effect]:
    if not session.available_versions:
        return []
    listing = " ".join(f"[{v}]" for v in session.available_versions)
    return [
        Reply("Please choose a version from the list:", PROMPT),
        Reply(listing, INFO, suggestion=session.available_versions[0]),
    ]


def _build_choices(session: WizardSession) -> list[Effect]:
    if not session.available_builds:
        return []
    latest = str(session.available_builds[0])
    return [
        Reply(f"Please choose a build (latest is {latest}):", PROMPT),
        Reply(f"Latest: [{latest}]", INFO, suggestion=latest),
    ]


def _enter(session: WizardSession) -> list[Effect]:
    """Effects for arriving at ``session.step`` for the first time."""
    if session.step is WizardStep.VERSION:
        return [
            Reply("Fetching available versions...", INFO),
            Send(GetVersions(session.software)),
        ]
    if session.step is WizardStep.BUILD:
        return [
            Reply(f"Fetching available builds for {session.version}...", INFO),
            Send(GetBuilds(session.software, session.version)),
        ]
    if session.step is WizardStep.CONFIRMATION:
        return [
            Reply("--- Server Configuration ---", INFO),
            Reply(f"Name: {session.name}", INFO),
            Reply(f"Port: {session.port}", INFO),
            Reply(f"Type: {session.software.value}", INFO),
            Reply(f"Version: {session.version}", INFO),
            Reply(f"Build: {session.build or LATEST_BUILD}", INFO),
            *_question(session),
        ]
    return _question(session)


def _parse_number(value: str) -> int | None:
    # plain ASCII digits only; int() would also take "1_025" or full-width digits
    if not value.isascii() or not value.isdigit():
        return None
    return int(value)


def _accept(session: WizardSession, **changes) -> Transition:
    moved = replace(session, **changes)
    moved = replace(moved, step=_next_step(moved))
    return Transition(moved, tuple(_enter(moved)))


def _reject(session: WizardSession, message: str) -> Transition:
    return Transition(session, (Reply(message, ERROR), *_question(session)))


def _finish(session: WizardSession, *effects: Effect) -> Transition:
    return Transition(replace(session, step=WizardStep.DONE), (*effects, EndSession()))


def start(flow: WizardFlow = WizardFlow.FULL) -> Transition:
    session = WizardSession(flow=flow)
    return Transition(session, tuple(_question(session)))


def abort(session: WizardSession, message: str = MSG_BAD_DATA) -> Transition:
    return _finish(session, Reply(message, ERROR))


def advance(session: WizardSession, text: str) -> Transition:
    """Apply one line of user input to the wizard."""
    value = (text or "").strip()
    if session.finished:
        return Transition(session, (EndSession(),))
    if value.lower() == "cancel":
        return _finish(session, Reply(MSG_CANCELLED, ERROR))

    step = session.step
    if step is WizardStep.NAME:
        if len(value) < MIN_NAME_LENGTH:
            return _reject(session, f"Name must be at least {MIN_NAME_LENGTH} characters.")
        return _accept(session, name=value)

    if step is WizardStep.PORT:
        port = _parse_number(value)
        if port is None or not MIN_PORT <= port <= MAX_PORT:
            return _reject(session, f"Invalid port. Must be a number between {MIN_PORT}-{MAX_PORT}.")
        return _accept(session, port=port)

    if step is WizardStep.TYPE:
        software = SoftwareType.from_input(value)
        if software is None:
            return _reject(session, "Invalid type. Please enter 'PaperMC' or 'Velocity'.")
        return _accept(session, software=software, available_versions=(), available_builds=())

    if step is WizardStep.VERSION:
        if value not in session.available_versions:
            return _reject(session, "Invalid version. Please select one from the list.")
        return _accept(session, version=value)

    if step is WizardStep.BUILD:
        build = _parse_number(value)
        if build is None or build not in session.available_builds:
            return _reject(session, "Invalid build number. Please select one from the list.")
        return _accept(session, build=str(build))

    # CONFIRMATION
    answer = value.lower()
    if answer == "yes":
        return _finish(
            session,
            Send(CreateServer(session.create_payload())),
            Reply("Creation request sent to proxy...", INFO),
        )
    if answer == "no":
        return _finish(session, Reply(MSG_CANCELLED, ERROR))
    return _reject(session, "Please type 'yes' or 'no'.")


def receive_versions(session: WizardSession, message: VersionList) -> Transition:
    if session.step is not WizardStep.VERSION or message.software is not session.software:
        return Transition(session)
    if not message.versions:
        return abort(session, f"No versions available for {message.software.value}.")
    updated = replace(session, available_versions=tuple(reversed(message.versions)))
    return Transition(updated, tuple(_version_choices(updated)))


def receive_builds(session: WizardSession, message: BuildList) -> Transition:
    if session.step is not WizardStep.BUILD or message.software is not session.software:
        return Transition(session)
    if not message.builds:
        return abort(session)
    updated = replace(session, available_builds=tuple(reversed(message.builds)))
    return Transition(updated, tuple(_build_choices(updated)))


def waiting_for_catalog(session: WizardSession) -> bool:
    if session.step is WizardStep.VERSION:
        return not session.available_versions
    if session.step is WizardStep.BUILD:
        return not session.available_builds
    return False


class WizardSessions:
    """Active wizard sessions by user; idle sessions expire after ``ttl_s``."""

    def __init__(self, *, flow: WizardFlow = WizardFlow.FULL, ttl_s: float | None = None, clock=time.monotonic):
        self.flow = flow
        self._registry: TTLRegistry[str, WizardSession] = TTLRegistry(ttl_s, clock=clock)

    def start(self, user: str) -> Transition:
        transition = start(self.flow)
        self._registry.put(user, transition.session)
        return transition

    def get(self, user: str) -> WizardSession | None:
        return self._registry.peek(user)

    def apply(self, user: str, transition: Transition) -> None:
        if transition.ends_session or transition.session.finished:
            self._registry.pop(user)
        else:
            self._registry.put(user, transition.session)

    def end(self, user: str) -> bool:
        return self._registry.pop(user) is not None

    def sweep(self) -> list[str]:
        return self._registry.sweep()

    def __contains__(self, user: object) -> bool:
        return user in self._registry

    def __len__(self) -> int:
        return len(self._registry)
