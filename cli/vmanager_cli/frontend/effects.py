"""Effects returned by the pure front-end logic and applied by the host."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..protocol import Message, ServerDescriptor
from .cache import Page

INFO = "info"
PROMPT = "prompt"
OK = "ok"
WARN = "warn"
ERROR = "error"


@dataclass(frozen=True)
class Reply:
    text: str
    level: str = INFO
    suggestion: str | None = None


@dataclass(frozen=True)
class Send:
    message: Message


@dataclass(frozen=True)
class ShowPage:
    page: Page


@dataclass(frozen=True)
class ShowServer:
    server: ServerDescriptor


@dataclass(frozen=True)
class CloseView:
    pass


@dataclass(frozen=True)
class StartWizard:
    pass


@dataclass(frozen=True)
class EndSession:
    pass


Effect = Union[Reply, Send, ShowPage, ShowServer, CloseView, StartWizard, EndSession]
