"""
Events emitted by the NUT poller.

A poller emits one DevicesDiscovered event, then one SnapshotReady event
per completed tick. A failure ends the stream with a single PollFailed event.
"""

from dataclasses import dataclass
from typing import Tuple, Union

from .errors import NUTError
from .models import DeviceRecord, PollSnapshot


@dataclass(frozen=True)
class DevicesDiscovered:
    """The device list captured when the poller started."""

    devices: Tuple[DeviceRecord, ...]


@dataclass(frozen=True)
class SnapshotReady:
    """A complete snapshot of every device."""

    snapshot: PollSnapshot


@dataclass(frozen=True)
class PollFailed:
    """The error that stopped the poller."""

    error: NUTError

    @property
    def message(self) -> str:
        return str(self.error)


PollEvent = Union[DevicesDiscovered, SnapshotReady, PollFailed]
