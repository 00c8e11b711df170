"""Ordered byte channel between the front-end and the proxy host.

Two implementations share the ``Channel`` interface:

- ``MemoryChannel`` pairs two in-process ends; each user gets its own queue
  and worker so delivery is FIFO per user.
- ``StreamChannel`` runs over asyncio TCP streams. Each frame is one JSON line
  ``{"user": "<id>", "data": "<payload>"}``; frames are handled in the order
  they are read and writes are serialised with a lock.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable, Protocol

from .protocol import ENCODING

logger = logging.getLogger(__name__)


class Channel(Protocol):
    async def send(self, user: str, payload: bytes) -> None:
        ...


Handler = Callable[[str, bytes, "Channel"], Awaitable[None]]


class ChannelClosed(ConnectionError):
    pass


async def _deliver(handler: Handler, user: str, payload: bytes, channel: Channel) -> None:
    try:
        await handler(user, payload, channel)
    except Exception:
        logger.exception("Channel handler failed for user %s", user)


class MemoryChannel:
    def __init__(self, name: str = "memory"):
        self.name = name
        self._peer: MemoryChannel | None = None
        self._handler: Handler | None = None
        self._queues: dict[str, asyncio.Queue] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._closed = False

    @classmethod
    def pair(cls) -> tuple["MemoryChannel", "MemoryChannel"]:
        left, right = cls("left"), cls("right")
        left._peer, right._peer = right, left
        return left, right

    def bind(self, handler: Handler) -> None:
        self._handler = handler

    async def send(self, user: str, payload: bytes) -> None:
        if self._closed or self._peer is None:
            raise ChannelClosed(f"{self.name} channel is closed.")
        self._peer._enqueue(user, bytes(payload))

    def _enqueue(self, user: str, payload: bytes) -> None:
        queue = self._queues.get(user)
        if queue is None:
            queue = self._queues[user] = asyncio.Queue()
            self._workers[user] = asyncio.get_running_loop().create_task(self._work(user, queue))
        queue.put_nowait(payload)

    async def _work(self, user: str, queue: asyncio.Queue) -> None:
        while True:
            payload = await queue.get()
            try:
                if self._handler is None:
                    logger.debug("%s: no handler bound, dropping message for %s", self.name, user)
                else:
                    await _deliver(self._handler, user, payload, self)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued message has been handled."""
        for queue in list(self._queues.values()):
            await queue.join()

    async def close(self) -> None:
        self._closed = True
        workers = list(self._workers.values())
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()
        self._queues.clear()


def encode_frame(user: str, payload: bytes) -> bytes:
    data = payload.decode(ENCODING)
    return json.dumps({"user": user, "data": data}, ensure_ascii=False).encode(ENCODING) + b"\n"


def decode_frame(line: bytes) -> tuple[str, bytes]:
    obj = json.loads(line.decode(ENCODING))
    if not isinstance(obj, dict) or not isinstance(obj.get("user"), str) or not isinstance(obj.get("data"), str):
        raise ValueError("Frame must be an object with string 'user' and 'data'.")
    return obj["user"], obj["data"].encode(ENCODING)


class StreamChannel:
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer
        self._lock = asyncio.Lock()

    @property
    def peer(self) -> str:
        peername = self._writer.get_extra_info("peername")
        return str(peername) if peername else "?"

    async def send(self, user: str, payload: bytes) -> None:
        frame = encode_frame(user, payload)
        async with self._lock:
            if self._writer.is_closing():
                raise ChannelClosed(f"Connection to {self.peer} is closed.")
            self._writer.write(frame)
            await self._writer.drain()

    async def run(self, handler: Handler) -> None:
        """Read frames until EOF, handing each one to ``handler`` in order."""
        while True:
            line = await self._reader.readline()
            if not line:
                break
            try:
                user, payload = decode_frame(line)
            except (ValueError, UnicodeDecodeError) as e:
                logger.warning("Dropping undecodable frame from %s: %s", self.peer, e)
                continue
            await _deliver(handler, user, payload, self)

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError):
            pass


async def serve_channel(handler: Handler, host: str, port: int) -> asyncio.Server:
    async def _on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        channel = StreamChannel(reader, writer)
        logger.info("Channel connection from %s", channel.peer)
        try:
            await channel.run(handler)
        finally:
            logger.info("Channel connection from %s closed", channel.peer)
            await channel.close()

    return await asyncio.start_server(_on_connect, host, port)


async def open_channel(host: str, port: int) -> StreamChannel:
    reader, writer = await asyncio.open_connection(host, port)
    return StreamChannel(reader, writer)
