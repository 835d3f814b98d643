"""
Command channel to the proxy: JSON messages separated by NUL bytes over a Unix socket.
"""

import asyncio
from abc import ABC, abstractmethod
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Optional

from routesync._internal.core.errors import ChannelError, MalformedMessageError
from routesync._internal.core.models.messages import ConfigMessage, ConfigMessageAnswer
from routesync._internal.utils.logging import get_logger

MESSAGE_SEPARATOR = b"\0"
MAX_MESSAGE_SIZE = 16 * 2**20  # state dumps with many certificates can be large
logger = get_logger(__name__)


class CommandChannel(ABC):
    """
    A connection to the proxy. Carries one request/response exchange at a time.
    """

    @abstractmethod
    async def send(self, message: ConfigMessage) -> None:
        pass

    @abstractmethod
    async def receive(self) -> Optional[ConfigMessageAnswer]:
        """
        Returns the next answer or None if the proxy closed the channel.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "CommandChannel":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


ChannelFactory = Callable[[], Awaitable[CommandChannel]]


class UnixSocketChannel(CommandChannel):
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    async def connect(cls, socket_path: Path) -> "UnixSocketChannel":
        try:
            reader, writer = await asyncio.open_unix_connection(
                str(socket_path), limit=MAX_MESSAGE_SIZE
            )
        except OSError as e:
            raise ChannelError(
                f"Could not connect to the proxy command socket {socket_path}: {e}"
            ) from e
        logger.debug("Connected to %s", socket_path)
        return cls(reader, writer)

    async def send(self, message: ConfigMessage) -> None:
        try:
            self._writer.write(message.to_bytes() + MESSAGE_SEPARATOR)
            await self._writer.drain()
        except OSError as e:
            raise ChannelError(f"Could not send message {message.id} to the proxy: {e}") from e

    async def receive(self) -> Optional[ConfigMessageAnswer]:
        try:
            data = await self._reader.readuntil(MESSAGE_SEPARATOR)
        except asyncio.IncompleteReadError:
            return None
        except asyncio.LimitOverrunError as e:
            raise MalformedMessageError("Message exceeds the size limit") from e
        except ConnectionError as e:
            logger.debug("Channel closed while receiving: %s", e)
            return None
        try:
            return ConfigMessageAnswer.from_bytes(data[: -len(MESSAGE_SEPARATOR)])
        except ValueError as e:
            raise MalformedMessageError(f"Could not decode message: {e}") from e

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError as e:
            logger.debug("Error closing channel: %s", e)


def unix_socket_connector(socket_path: Path) -> ChannelFactory:
    return partial(UnixSocketChannel.connect, socket_path)
