from __future__ import annotations

import asyncio
import logging

from vmanager_client import VManagerClientError
from vmanager_client.catalog import list_builds, list_versions
from vmanager_client.client import SERVER_ACTIONS
from vmanager_client.resolve import match_server_by_name

from ..channel import Channel, ChannelClosed
from ..protocol import (
    ENCODING,
    ActionRequest,
    ActionResponse,
    BuildList,
    CreateServer,
    CreationResponse,
    GetBuilds,
    GetServers,
    GetVersions,
    Message,
    ProtocolError,
    ServerDescriptor,
    ServerList,
    SoftwareType,
    VersionList,
    decode,
    encode,
)

logger = logging.getLogger(__name__)


def _is_creation_command(command: str) -> bool:
    if command == CreateServer.command:
        return True
    return command.startswith("GET_") and command.endswith(("_VERSIONS", "_BUILDS"))


class ProxyDispatcher:
    """Answers every inbound request with exactly one response.

    ``handle`` is the channel's receive callback: it decodes the request and
    schedules the backend work as a task, so the receive loop never waits on
    the backend. The response goes back on the channel the request came from.
    """

    def __init__(self, client):
        self._client = client
        self._tasks: set[asyncio.Task] = set()

    async def handle(self, user: str, payload: bytes, channel: Channel) -> None:
        try:
            message = decode(payload)
        except ProtocolError as e:
            command = payload.decode(ENCODING, errors="replace").partition(":")[0]
            logger.warning("Malformed %s request from %s: %s", command, user, e)
            detail = f"Malformed request: {e}"
            response = CreationResponse(False, detail) if _is_creation_command(command) else ActionResponse(False, detail)
            self._schedule(self._send(channel, user, response))
            return

        if message is None:
            logger.debug("Ignoring unknown command from %s: %r", user, payload[:64])
            return
        if not isinstance(message, (GetServers, ActionRequest, CreateServer, GetVersions, GetBuilds)):
            logger.debug("Ignoring %s from %s: not a request", message.command, user)
            return
        self._schedule(self._answer(channel, user, message))

    def _schedule(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for all in-flight requests to be answered."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _answer(self, channel: Channel, user: str, message: Message) -> None:
        try:
            response = await self.respond(message)
        except Exception as e:
            logger.exception("Unexpected failure answering %s for %s", message.command, user)
            detail = f"Internal error: {e}"
            if isinstance(message, (CreateServer, GetVersions, GetBuilds)):
                response = CreationResponse(False, detail)
            else:
                response = ActionResponse(False, detail)
        await self._send(channel, user, response)

    async def _send(self, channel: Channel, user: str, response: Message) -> None:
        try:
            await channel.send(user, encode(response))
        except (ChannelClosed, ConnectionError) as e:
            logger.warning("Could not deliver %s to %s: %s", response.command, user, e)

    async def respond(self, message: Message) -> Message:
        if isinstance(message, GetServers):
            return await self.list_servers()
        if isinstance(message, ActionRequest):
            return await self.perform_action(message.verb, message.name)
        if isinstance(message, CreateServer):
            return await self.create_server(message.payload)
        if isinstance(message, GetVersions):
            return await self.list_versions(message.software)
        if isinstance(message, GetBuilds):
            return await self.list_builds(message.software, message.version)
        raise TypeError(f"{type(message).__name__} is not a request")

    async def list_servers(self) -> Message:
        try:
            items = await self._client.list_servers()
            servers = tuple(ServerDescriptor.from_dict(item) for item in items)
        except (VManagerClientError, ProtocolError) as e:
            logger.error("Failed to fetch servers: %s", e)
            return ActionResponse(False, f"Failed to fetch servers: {e}")
        return ServerList(servers)

    async def perform_action(self, verb: str, server_name: str) -> Message:
        verb = verb.strip().lower()
        if verb not in SERVER_ACTIONS:
            return ActionResponse(False, f"Unknown action '{verb}'.")
        try:
            items = await self._client.list_servers()
        except VManagerClientError as e:
            return ActionResponse(False, f"Failed to {verb} server: {e}")

        target = match_server_by_name(items, server_name)
        if target is None:
            return ActionResponse(False, f"Server '{server_name}' not found.")

        try:
            detail = await self._client.server_action(
                verb,
                server_name=str(target.get("name")),
                server_version=target.get("serverVersion"),
                server_type=target.get("softwareType"),
            )
        except VManagerClientError as e:
            logger.error("Failed to %s server %s: %s", verb, server_name, e)
            return ActionResponse(False, f"Failed to {verb} server: {e}")
        logger.info("%s %s: %s", verb, target.get("name"), detail)
        return ActionResponse(True, detail)

    async def create_server(self, payload: dict) -> Message:
        try:
            detail = await self._client.create_server(payload)
        except VManagerClientError as e:
            logger.error("Failed to create server %s: %s", payload.get("serverName"), e)
            return CreationResponse(False, f"Failed to create server: {e}")
        return CreationResponse(True, detail)

    async def list_versions(self, software: SoftwareType) -> Message:
        try:
            versions = await list_versions(self._client, software.value)
        except VManagerClientError as e:
            logger.error("Failed to get versions for %s: %s", software.value, e)
            return CreationResponse(False, f"Failed to fetch {software.value} versions: {e}")
        return VersionList(software, tuple(versions))

    async def list_builds(self, software: SoftwareType, version: str) -> Message:
        try:
            builds = await list_builds(self._client, software.value, version)
        except VManagerClientError as e:
            logger.error("Failed to get builds for %s v%s: %s", software.value, version, e)
            return CreationResponse(False, f"Failed to fetch {software.value} builds for {version}: {e}")
        return BuildList(software, tuple(builds))
