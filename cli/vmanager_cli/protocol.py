"""Wire protocol shared by the front-end and the proxy host.

Every channel message is UTF-8 text shaped ``COMMAND[:ARG]``. ``ARG`` is taken
whole, except for ``ACTION`` (``verb:name``) and the two response commands
(``status:detail``) whose argument is split once more so that names and
details may contain colons. Lists travel as compact JSON arrays.

    GET_SERVERS                   -> SERVERS:[{...}, ...]
    ACTION:<verb>:<name>          -> ACTION_RESPONSE:<success|error>:<detail>
    CREATE_SERVER:{...}           -> CREATION_RESPONSE:<success|error>:<detail>
    GET_<TYPE>_VERSIONS           -> <TYPE>_VERSIONS:["1.20.4", ...]
    GET_<TYPE>_BUILDS:<version>   -> <TYPE>_BUILDS:[431, 432, ...]

``decode`` is the only parse entry point; it returns one of the message
dataclasses below, or ``None`` for a command outside the vocabulary.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

ENCODING = "utf-8"

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
NO_DETAILS = "No details provided."


class ProtocolError(ValueError):
    """Raised when a recognised command carries a payload that cannot be parsed."""


class ServerStatus(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
    STARTING = "Starting"
    STOPPING = "Stopping"
    RESTARTING = "Restarting"
    UNKNOWN = "Unknown"

    @classmethod
    def from_raw(cls, value: str | None) -> "ServerStatus":
        lowered = str(value or "").strip().lower()
        for status in cls:
            if status.value.lower() == lowered:
                return status
        return cls.UNKNOWN


class SoftwareType(str, Enum):
    PAPERMC = "PaperMC"
    VELOCITY = "Velocity"

    @property
    def token(self) -> str:
        return self.name

    @classmethod
    def from_input(cls, value: str | None) -> "SoftwareType | None":
        lowered = str(value or "").strip().lower()
        for software in cls:
            if software.value.lower() == lowered:
                return software
        return None

    @classmethod
    def from_token(cls, token: str) -> "SoftwareType | None":
        # PAPERTMC is what older proxies put on the wire.
        if token == "PAPERTMC":
            return cls.PAPERMC
        try:
            return cls[token]
        except KeyError:
            return None


@dataclass(frozen=True)
class ServerDescriptor:
    id: str
    name: str
    status: str
    port: int
    ip: str
    software_type: str
    software_version: str

    @property
    def state(self) -> ServerStatus:
        return ServerStatus.from_raw(self.status)

    @classmethod
    def from_dict(cls, data: Any) -> "ServerDescriptor":
        if not isinstance(data, dict):
            raise ProtocolError("Server descriptor must be a JSON object.")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError("Server descriptor is missing 'name'.")
        port = data.get("port")
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ProtocolError(f"Server '{name}' has an invalid port: {port!r}")
        return cls(
            id=str(data.get("id") if data.get("id") is not None else ""),
            name=name,
            status=str(data.get("status") or ServerStatus.UNKNOWN.value),
            port=port,
            ip=str(data.get("ip") or ""),
            software_type=str(data.get("softwareType") or ""),
            software_version=str(data.get("serverVersion") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "port": self.port,
            "ip": self.ip,
            "softwareType": self.software_type,
            "serverVersion": self.software_version,
        }


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _load(raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Malformed JSON in {what}: {e.msg}") from e


def _split_status(command: str, arg: str) -> tuple[bool, str]:
    status, sep, detail = arg.partition(":")
    if status not in (STATUS_SUCCESS, STATUS_ERROR):
        raise ProtocolError(f"{command} has unknown status '{status}'.")
    return status == STATUS_SUCCESS, detail if sep else NO_DETAILS


@dataclass(frozen=True)
class GetServers:
    command: ClassVar[str] = "GET_SERVERS"

    def argument(self) -> str | None:
        return None


@dataclass(frozen=True)
class ServerList:
    servers: tuple[ServerDescriptor, ...] = ()

    command: ClassVar[str] = "SERVERS"

    def argument(self) -> str | None:
        return _dump([s.to_dict() for s in self.servers])


@dataclass(frozen=True)
class ActionRequest:
    verb: str
    name: str

    command: ClassVar[str] = "ACTION"

    def argument(self) -> str | None:
        return f"{self.verb}:{self.name}"


@dataclass(frozen=True)
class ActionResponse:
    ok: bool
    detail: str

    command: ClassVar[str] = "ACTION_RESPONSE"

    def argument(self) -> str | None:
        return f"{STATUS_SUCCESS if self.ok else STATUS_ERROR}:{self.detail}"


@dataclass(frozen=True)
class CreateServer:
    payload: dict[str, Any] = field(default_factory=dict)

    command: ClassVar[str] = "CREATE_SERVER"

    def argument(self) -> str | None:
        return _dump(self.payload)


@dataclass(frozen=True)
class CreationResponse:
    ok: bool
    detail: str

    command: ClassVar[str] = "CREATION_RESPONSE"

    def argument(self) -> str | None:
        return f"{STATUS_SUCCESS if self.ok else STATUS_ERROR}:{self.detail}"


@dataclass(frozen=True)
class GetVersions:
    software: SoftwareType

    @property
    def command(self) -> str:
        return f"GET_{self.software.token}_VERSIONS"

    def argument(self) -> str | None:
        return None


@dataclass(frozen=True)
class VersionList:
    software: SoftwareType
    versions: tuple[str, ...] = ()

    @property
    def command(self) -> str:
        return f"{self.software.token}_VERSIONS"

    def argument(self) -> str | None:
        return _dump(list(self.versions))


@dataclass(frozen=True)
class GetBuilds:
    software: SoftwareType
    version: str

    @property
    def command(self) -> str:
        return f"GET_{self.software.token}_BUILDS"

    def argument(self) -> str | None:
        return self.version


@dataclass(frozen=True)
class BuildList:
    software: SoftwareType
    builds: tuple[int, ...] = ()

    @property
    def command(self) -> str:
        return f"{self.software.token}_BUILDS"

    def argument(self) -> str | None:
        return _dump(list(self.builds))


Message = Union[
    GetServers,
    ServerList,
    ActionRequest,
    ActionResponse,
    CreateServer,
    CreationResponse,
    GetVersions,
    VersionList,
    GetBuilds,
    BuildList,
]


def to_wire(message: Message) -> str:
    arg = message.argument()
    return message.command if arg is None else f"{message.command}:{arg}"


def encode(message: Message) -> bytes:
    return to_wire(message).encode(ENCODING)


def parse_servers(raw: str) -> tuple[ServerDescriptor, ...]:
    data = _load(raw, "server list")
    if not isinstance(data, list):
        raise ProtocolError("Server list must be a JSON array.")
    return tuple(ServerDescriptor.from_dict(item) for item in data)


def parse_versions(raw: str) -> tuple[str, ...]:
    data = _load(raw, "version list")
    if not isinstance(data, list) or not all(isinstance(v, str) for v in data):
        raise ProtocolError("Version list must be a JSON array of strings.")
    return tuple(data)


def parse_builds(raw: str) -> tuple[int, ...]:
    data = _load(raw, "build list")
    if not isinstance(data, list) or not all(
        isinstance(b, int) and not isinstance(b, bool) for b in data
    ):
        raise ProtocolError("Build list must be a JSON array of integers.")
    return tuple(data)


def _decode_software(command: str, arg: str) -> Message | None:
    if command.startswith("GET_") and command.endswith("_VERSIONS"):
        software = SoftwareType.from_token(command[len("GET_"):-len("_VERSIONS")])
        return GetVersions(software) if software else None
    if command.startswith("GET_") and command.endswith("_BUILDS"):
        software = SoftwareType.from_token(command[len("GET_"):-len("_BUILDS")])
        if software is None:
            return None
        if not arg:
            raise ProtocolError(f"{command} requires a version.")
        return GetBuilds(software, arg)
    if command.endswith("_VERSIONS"):
        software = SoftwareType.from_token(command[:-len("_VERSIONS")])
        return VersionList(software, parse_versions(arg)) if software else None
    if command.endswith("_BUILDS"):
        software = SoftwareType.from_token(command[:-len("_BUILDS")])
        return BuildList(software, parse_builds(arg)) if software else None
    return None


def decode(data: bytes | str) -> Message | None:
    """Parse one channel message.

    Returns ``None`` for commands outside the vocabulary and raises
    ``ProtocolError`` when a known command carries an unparseable payload.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode(ENCODING)
        except UnicodeDecodeError as e:
            raise ProtocolError("Channel payload is not valid UTF-8.") from e
    command, _, arg = data.partition(":")

    if command == GetServers.command:
        return GetServers()
    if command == ServerList.command:
        return ServerList(parse_servers(arg))
    if command == ActionRequest.command:
        verb, sep, name = arg.partition(":")
        if not sep or not verb or not name:
            raise ProtocolError("ACTION requires '<verb>:<name>'.")
        return ActionRequest(verb, name)
    if command == ActionResponse.command:
        return ActionResponse(*_split_status(command, arg))
    if command == CreateServer.command:
        payload = _load(arg, "create request")
        if not isinstance(payload, dict):
            raise ProtocolError("CREATE_SERVER payload must be a JSON object.")
        return CreateServer(payload)
    if command == CreationResponse.command:
        return CreationResponse(*_split_status(command, arg))
    return _decode_software(command, arg)
