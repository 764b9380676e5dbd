"""
NUT (Network UPS Tools) client.

This module provides an asynchronous client for interacting with a NUT
server over the upsd text protocol. A client owns exactly one connection
and issues one command at a time.
"""

import logging
from typing import Dict, List, Optional

from ..config import settings
from .errors import NUTAuthenticationError, NUTError
from .models import ConnectionParameters, DeviceRecord, DeviceSummary
from .protocol import (
    LIST_UPS_BEGIN,
    LIST_UPS_END,
    LIST_VAR_BEGIN,
    LIST_VAR_END,
    parse_ups_line,
    parse_var_line,
    require_prefix,
)
from .transport import NUTTransport

logger = logging.getLogger(__name__)


class NUTClient:
    """
    An asynchronous client for NUT servers.

    Use ``NUTClient.connect`` to open and authenticate a session. The client
    is not meant to be shared between tasks.
    """

    def __init__(self, transport: NUTTransport, params: ConnectionParameters):
        self._transport = transport
        self.params = params

    @classmethod
    async def connect(
        cls,
        params: ConnectionParameters,
        *,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
    ) -> "NUTClient":
        """
        Connect to a NUT server and authenticate if a username is given.

        Args:
            params: Host, port and credentials.
            connect_timeout: Seconds to wait for the TCP connection.
            read_timeout: Seconds to wait for each response line.

        Raises:
            NUTNetworkError: If the server cannot be reached.
            NUTAuthenticationError: If the server rejects the credentials.
        """
        if connect_timeout is None:
            connect_timeout = settings.CONNECT_TIMEOUT
        if read_timeout is None:
            read_timeout = settings.READ_TIMEOUT

        transport = await NUTTransport.open(
            params.host,
            params.port,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        client = cls(transport, params)
        if params.username:
            try:
                await client.authenticate()
            except NUTError as e:
                transport.close()
                raise NUTAuthenticationError(
                    f"Authentication as '{params.username}' on {transport.peer} failed: {e}"
                ) from e
        logger.info(
            "Initialized NUT client host=%s port=%s user=%s",
            params.host, params.port, bool(params.username),
        )
        return client

    @property
    def closed(self) -> bool:
        return self._transport.closed

    async def authenticate(self) -> None:
        """Send USERNAME and, if set, PASSWORD to the server."""
        await self._transport.send_command(f"USERNAME {self.params.username}")
        await self._transport.expect_ok()
        if self.params.password:
            await self._transport.send_command(f"PASSWORD {self.params.password}")
            await self._transport.expect_ok()
        logger.debug("Authenticated as '%s'", self.params.username)

    async def list_ups(self) -> List[DeviceRecord]:
        """
        List the available UPS devices on the NUT server.

        Returns:
            The devices in the order the server announced them.

        Raises:
            NUTProtocolError: If the response is not a UPS list.
        """
        logger.debug("Listing UPS devices from %s", self._transport.peer)
        await self._transport.send_command("LIST UPS")
        require_prefix(await self._transport.read_line(), LIST_UPS_BEGIN)

        devices: List[DeviceRecord] = []
        while True:
            line = await self._transport.read_line()
            if line.startswith(LIST_UPS_END):
                break
            parsed = parse_ups_line(line)
            if parsed is not None:
                name, description = parsed
                devices.append(DeviceRecord(name=name, description=description))

        logger.info("NUT list_ups ok: %d devices", len(devices))
        return devices

    async def list_vars(self, ups_name: str) -> Dict[str, str]:
        """
        Get all variables for a specific UPS.

        VAR lines naming a different UPS are dropped.

        Args:
            ups_name: The name of the UPS device.

        Returns:
            A dictionary of variable names to raw string values.

        Raises:
            NUTProtocolError: If the response is not a variable list.
        """
        logger.debug("Fetching vars for UPS '%s'", ups_name)
        await self._transport.send_command(f"LIST VAR {ups_name}")
        require_prefix(await self._transport.read_line(), LIST_VAR_BEGIN)

        variables: Dict[str, str] = {}
        while True:
            line = await self._transport.read_line()
            if line.startswith(LIST_VAR_END):
                break
            parsed = parse_var_line(line)
            if parsed is None:
                continue
            ups, name, value = parsed
            if ups != ups_name:
                logger.debug("Dropping VAR line for '%s' while listing '%s'", ups, ups_name)
                continue
            variables[name] = value

        logger.debug("NUT list_vars ok for '%s' (%d vars)", ups_name, len(variables))
        return variables

    async def get_ups_info(self, ups_name: str) -> DeviceSummary:
        """Fetch all variables for a UPS and project them into a summary."""
        return DeviceSummary.from_variables(ups_name, await self.list_vars(ups_name))

    async def logout(self) -> None:
        """Say goodbye to the server and close the connection."""
        try:
            await self._transport.send_command("LOGOUT")
            await self._transport.read_line()
        finally:
            await self._transport.wait_closed()

    def close(self) -> None:
        """Release the connection immediately."""
        self._transport.close()

    async def aclose(self) -> None:
        """Release the connection and wait for the socket to close."""
        await self._transport.wait_closed()
