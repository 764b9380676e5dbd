"""
Background polling service for NUT integration.

This module contains the NUTPoller class, which lists the UPS devices of a
NUT server once and then periodically fetches the variables of every device,
publishing each complete snapshot on an ordered event queue.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import AsyncIterator, Dict, Optional

from ..config import settings
from .client import NUTClient
from .errors import NUTError
from .events import DevicesDiscovered, PollEvent, PollFailed, SnapshotReady
from .models import PollSnapshot

logger = logging.getLogger(__name__)


class CancellationHandle:
    """
    A one-shot stop signal shared between a controller and a poller.

    ``cancel()`` may be called any number of times and from any thread.
    """

    def __init__(self):
        self._flag = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def cancel(self) -> None:
        """Signal cancellation."""
        if self._flag.is_set():
            return
        self._flag.set()
        loop, event = self._loop, self._event
        if loop is None or event is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        else:
            loop.call_soon_threadsafe(event.set)

    async def sleep(self, delay: float) -> bool:
        """
        Sleep for ``delay`` seconds or until cancelled.

        Returns:
            True if the handle was cancelled, False if the delay elapsed.
        """
        if self._event is None:
            self._loop = asyncio.get_running_loop()
            self._event = asyncio.Event()
        if self._flag.is_set():
            self._event.set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return self.cancelled
        return True


class PollerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    ABORTED = "aborted"


class NUTPoller:
    """
    A service that polls a NUT server for UPS data.

    The poller owns its client and closes it when the loop ends.
    """

    def __init__(
        self,
        client: NUTClient,
        interval: Optional[float] = None,
        cancellation: Optional[CancellationHandle] = None,
        max_pending: int = 100,
    ):
        """
        Initialize the NUT poller.

        Args:
            client: An authenticated client. The poller takes ownership.
            interval: Seconds between ticks.
            cancellation: Handle used to stop the loop; one is created if omitted.
            max_pending: Events kept for a slow or absent consumer. Once the
                queue holds this many, the oldest one is dropped.
        """
        self.client = client
        self.interval = settings.POLL_INTERVAL if interval is None else interval
        self.cancellation = cancellation or CancellationHandle()
        self.state = PollerState.IDLE
        self.last_snapshot: PollSnapshot | None = None
        self.last_error: NUTError | None = None
        self.max_pending = max(1, max_pending)
        self.dropped_events = 0
        self._events: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the poller as a background task."""
        if self._task is not None:
            logger.warning("Poller is already running.")
            return self._task

        logger.info(f"Starting NUT poller on {self.client.params.host}:{self.client.params.port}")
        self.state = PollerState.RUNNING
        self._task = asyncio.create_task(self._poll_loop())
        return self._task

    def cancel(self) -> None:
        """Ask the loop to stop at its next check point."""
        self.cancellation.cancel()

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop the poller and wait for the loop to finish."""
        self.cancel()
        if not self.is_running:
            return

        logger.info("Stopping NUT poller")
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Poller task did not stop gracefully within timeout.")
            self._task.cancel()
        logger.info("NUT poller stopped.")

    async def events(self) -> AsyncIterator[PollEvent]:
        """
        Yield events in the order they were produced until the loop ends.

        Only one consumer should iterate. Callers that never iterate, and
        only read ``last_snapshot``, cost at most ``max_pending`` queued events.
        """
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    async def _poll_loop(self):
        """The main polling loop."""
        try:
            await self._run()
        except NUTError as e:
            if self.cancellation.cancelled:
                logger.debug(f"Ignoring error after cancellation: {e}")
                self.state = PollerState.STOPPED
            else:
                logger.error(f"NUT polling failed: {e}")
                self.last_error = e
                self.state = PollerState.ABORTED
                self._emit(PollFailed(e))
        else:
            self.state = PollerState.STOPPED
        finally:
            if self.state == PollerState.RUNNING:
                # Task cancelled from outside
                self.state = PollerState.STOPPED
            self.client.close()
            # End marker goes in even when the queue is full
            self._events.put_nowait(None)

    async def _run(self):
        devices = tuple(await self.client.list_ups())
        if self.cancellation.cancelled:
            return
        self._emit(DevicesDiscovered(devices))

        while not self.cancellation.cancelled:
            variables: Dict[str, Dict[str, str]] = {}
            for device in devices:
                if self.cancellation.cancelled:
                    return
                variables[device.name] = await self.client.list_vars(device.name)
            if self.cancellation.cancelled:
                return

            snapshot = PollSnapshot(devices=devices, variables=variables)
            self.last_snapshot = snapshot
            self._emit(SnapshotReady(snapshot))

            if await self.cancellation.sleep(self.interval):
                return

    def _emit(self, event: PollEvent) -> None:
        while self._events.qsize() >= self.max_pending:
            dropped = self._events.get_nowait()
            self.dropped_events += 1
            logger.debug("Event queue full, dropping %s", type(dropped).__name__)
        self._events.put_nowait(event)
