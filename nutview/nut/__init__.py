"""
NUT protocol client, poller and connection lifecycle for nutview.
"""

from nutview.nut.client import NUTClient
from nutview.nut.controller import ConnectionController, ConnectionState
from nutview.nut.errors import (
    NUTAuthenticationError,
    NUTConnectionClosedError,
    NUTError,
    NUTNetworkError,
    NUTProtocolError,
)
from nutview.nut.events import DevicesDiscovered, PollEvent, PollFailed, SnapshotReady
from nutview.nut.models import ConnectionParameters, DeviceRecord, DeviceSummary, PollSnapshot
from nutview.nut.poller import CancellationHandle, NUTPoller, PollerState

__all__ = [
    "CancellationHandle",
    "ConnectionController",
    "ConnectionParameters",
    "ConnectionState",
    "DeviceRecord",
    "DeviceSummary",
    "DevicesDiscovered",
    "NUTAuthenticationError",
    "NUTClient",
    "NUTConnectionClosedError",
    "NUTError",
    "NUTNetworkError",
    "NUTPoller",
    "NUTProtocolError",
    "PollEvent",
    "PollFailed",
    "PollSnapshot",
    "PollerState",
    "SnapshotReady",
]
