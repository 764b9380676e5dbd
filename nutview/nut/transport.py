"""
Line-oriented TCP transport for upsd.

This module wraps an asyncio stream pair. Commands and responses are single
lines terminated by a newline, and the protocol is strictly request/response:
only one command may be outstanding at a time.
"""

import asyncio
import logging
from typing import Optional

from ..utils.logging import TRAFFIC_LOGGER
from .errors import NUTConnectionClosedError, NUTNetworkError, NUTProtocolError

logger = logging.getLogger(__name__)
traffic_logger = logging.getLogger(TRAFFIC_LOGGER)


class NUTTransport:
    """
    An open connection to a upsd server.

    Any network failure or end of stream closes the transport; every later
    call then raises NUTConnectionClosedError.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        read_timeout: Optional[float] = None,
        peer: str = "",
    ):
        self._reader = reader
        self._writer = writer
        self.read_timeout = read_timeout
        self.peer = peer
        self._closed = False

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        *,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
    ) -> "NUTTransport":
        """
        Open a TCP connection to a upsd server.

        Raises:
            NUTNetworkError: If the connection cannot be established.
        """
        peer = f"{host}:{port}"
        logger.debug("Connecting to %s", peer)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise NUTNetworkError(f"Connection to {peer} timed out") from e
        except OSError as e:
            raise NUTNetworkError(f"Failed to connect to {peer}: {e}") from e
        logger.info("Connected to NUT server %s", peer)
        return cls(reader, writer, read_timeout=read_timeout, peer=peer)

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_command(self, line: str) -> None:
        """
        Send a single command line.

        Raises:
            NUTProtocolError: If the line contains a CR or LF; nothing is sent.
            NUTNetworkError: If the write fails.
            NUTConnectionClosedError: If the transport is already closed.
        """
        self._ensure_open()
        shown = "PASSWORD ***" if line.startswith("PASSWORD ") else line
        if "\n" in line or "\r" in line:
            # Would smuggle a second command into the same write
            raise NUTProtocolError("Command must not contain line breaks", shown)
        traffic_logger.debug(">>> %s", shown)
        try:
            self._writer.write((line + "\n").encode("utf-8"))
            await self._writer.drain()
        except OSError as e:
            self.close()
            raise NUTNetworkError(f"Failed to send command to {self.peer}: {e}") from e

    async def read_line(self) -> str:
        """
        Read one response line without its line terminator.

        Raises:
            NUTConnectionClosedError: If the server closed the connection.
            NUTNetworkError: If the read fails or times out.
            NUTProtocolError: If the line exceeds the stream buffer limit.
        """
        self._ensure_open()
        try:
            data = await asyncio.wait_for(self._reader.readline(), timeout=self.read_timeout)
        except asyncio.TimeoutError as e:
            self.close()
            raise NUTNetworkError(
                f"No response from {self.peer} within {self.read_timeout}s"
            ) from e
        except ValueError as e:
            self.close()
            raise NUTProtocolError(f"Response line from {self.peer} is too long") from e
        except OSError as e:
            self.close()
            raise NUTNetworkError(f"Failed to read from {self.peer}: {e}") from e

        if not data:
            self.close()
            raise NUTConnectionClosedError(f"Connection closed by server {self.peer}")

        line = data.decode("utf-8", errors="replace").rstrip("\r\n")
        traffic_logger.debug("<<< %s", line)
        return line

    async def expect_ok(self) -> None:
        """
        Read one line and require it to be an OK acknowledgement.

        Raises:
            NUTProtocolError: If the line does not start with OK.
        """
        line = await self.read_line()
        if not line.startswith("OK"):
            raise NUTProtocolError(f"Expected OK, got: {line}", line)

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._writer.close()
        except RuntimeError:
            # The event loop that owned the socket is already closed.
            logger.debug("Event loop closed before %s could be closed", self.peer)
        logger.info("Closed connection to %s", self.peer)

    async def wait_closed(self) -> None:
        """Close the connection and wait until the socket is torn down."""
        self.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            logger.debug("Error while closing %s: %s", self.peer, e)

    def _ensure_open(self) -> None:
        if self._closed:
            raise NUTConnectionClosedError(f"Connection to {self.peer} is closed")
