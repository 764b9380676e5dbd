"""
Connection lifecycle for a NUT monitoring session.

The ConnectionController turns connect and disconnect requests into a small
state machine and hands every authenticated client to a fresh NUTPoller.
Only one client is ever retained; results of superseded connect attempts
are discarded.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..config import settings
from .client import NUTClient
from .errors import NUTError
from .models import ConnectionParameters
from .poller import CancellationHandle, NUTPoller

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class ConnectionController:
    """
    Coordinates connect, poll and disconnect for one NUT server at a time.
    """

    def __init__(
        self,
        poll_interval: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
    ):
        self.poll_interval = settings.POLL_INTERVAL if poll_interval is None else poll_interval
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.state = ConnectionState.DISCONNECTED
        self.error: Optional[str] = None
        self.session: Optional[NUTPoller] = None
        self.cancellation: Optional[CancellationHandle] = None
        self._attempt = 0
        self._attempt_task: Optional[asyncio.Task] = None

    def connect(self, params: ConnectionParameters) -> "asyncio.Task[Optional[NUTPoller]]":
        """
        Start a connect attempt in the background.

        Returns:
            A task resolving to the running poller, or None if the attempt
            failed or was superseded. On failure ``error`` holds the message.
        """
        if self.state == ConnectionState.CONNECTED:
            self.disconnect()

        self._attempt += 1
        self.error = None
        self.state = ConnectionState.CONNECTING
        logger.info("Connecting to %s:%s (attempt %d)", params.host, params.port, self._attempt)
        self._attempt_task = asyncio.create_task(self._connect(self._attempt, params))
        return self._attempt_task

    async def _connect(self, attempt: int, params: ConnectionParameters) -> Optional[NUTPoller]:
        try:
            client = await NUTClient.connect(
                params,
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
            )
        except NUTError as e:
            if self._is_current(attempt):
                logger.error("Connection to %s:%s failed: %s", params.host, params.port, e)
                self.error = str(e)
                self.state = ConnectionState.DISCONNECTED
            return None

        if not self._is_current(attempt):
            logger.info("Discarding superseded connection to %s:%s", params.host, params.port)
            client.close()
            return None

        poller = NUTPoller(client, interval=self.poll_interval)
        poller.start()
        self.session = poller
        self.cancellation = poller.cancellation
        self.state = ConnectionState.CONNECTED
        return poller

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt and self.state == ConnectionState.CONNECTING

    def cancel(self) -> None:
        """Stop polling but keep the session so its last snapshot stays visible."""
        if self.cancellation is not None:
            self.cancellation.cancel()

    def disconnect(self) -> None:
        """
        Stop polling and release the client.

        The socket is closed before this returns, so a new connect attempt is
        never blocked by the old session.
        """
        if self.state == ConnectionState.CONNECTING:
            logger.info("Abandoning connect attempt %d", self._attempt)
            self._attempt += 1
            self.state = ConnectionState.DISCONNECTED
            return
        if self.state != ConnectionState.CONNECTED:
            return

        self.state = ConnectionState.DISCONNECTING
        if self.cancellation is not None:
            self.cancellation.cancel()
        if self.session is not None:
            self.session.client.close()
        self.session = None
        self.cancellation = None
        self.state = ConnectionState.DISCONNECTED
        logger.info("Disconnected")

    async def aclose(self) -> None:
        """Disconnect and wait for the background tasks to finish."""
        session = self.session
        attempt_task = self._attempt_task
        self.disconnect()
        if attempt_task is not None and not attempt_task.done():
            await attempt_task
        if session is not None:
            await session.stop()
