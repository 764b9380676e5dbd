import asyncio
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from nutview.nut.models import ConnectionParameters
from nutview.nut.protocol import quote


# Skip integration tests unless explicitly enabled
def pytest_addoption(parser):
    parser.addoption("--integration", action="store_true", default=False, help="Run integration tests")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


class FakeUpsd:
    """
    A tiny in-process upsd speaking the subset of the protocol nutview uses.

    Attributes:
        commands: Every command line received, across all connections.
        close_on: Command prefix on which the server hangs up without replying.
        stall_on: Command prefix on which the server goes silent until closed.
        stray_lines: Extra body lines injected into every LIST VAR reply.
    """

    def __init__(
        self,
        devices: Dict[str, str],
        variables: Dict[str, Dict[str, str]],
        users: Optional[Dict[str, str]] = None,
    ):
        self.devices = devices
        self.variables = variables
        self.users = users or {}
        self.commands: List[str] = []
        self.close_on: Optional[str] = None
        self.stall_on: Optional[str] = None
        self.list_ups_reply: Optional[List[str]] = None
        self.stray_lines: List[str] = []
        self.connections = 0
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: List[asyncio.StreamWriter] = []
        self._released = asyncio.Event()

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    def params(self, **kwargs) -> ConnectionParameters:
        return ConnectionParameters(host="127.0.0.1", port=self.port, **kwargs)

    async def start(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)

    async def close(self):
        self._released.set()
        for writer in self._writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader, writer):
        self.connections += 1
        self._writers.append(writer)
        username = None
        try:
            while True:
                data = await reader.readline()
                if not data:
                    break
                command = data.decode().rstrip("\r\n")
                self.commands.append(command)

                if self.close_on and command.startswith(self.close_on):
                    break
                if self.stall_on and command.startswith(self.stall_on):
                    await self._released.wait()
                    break

                if command.startswith("USERNAME "):
                    username = command.split(" ", 1)[1]
                    reply = ["OK"]
                elif command.startswith("PASSWORD "):
                    password = command.split(" ", 1)[1]
                    if username in self.users and self.users[username] == password:
                        reply = ["OK"]
                    else:
                        reply = ["ERR ACCESS-DENIED"]
                elif command == "LIST UPS":
                    reply = self.list_ups_reply or self._list_ups()
                elif command.startswith("LIST VAR "):
                    reply = self._list_var(command.split(" ", 2)[2])
                elif command == "LOGOUT":
                    writer.write(b"OK Goodbye\n")
                    await writer.drain()
                    break
                else:
                    reply = ["ERR UNKNOWN-COMMAND"]

                writer.write("".join(line + "\n" for line in reply).encode())
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()

    def _list_ups(self) -> List[str]:
        lines = ["BEGIN LIST UPS"]
        lines += [f"UPS {name} {quote(desc)}" for name, desc in self.devices.items()]
        lines.append("END LIST UPS")
        return lines

    def _list_var(self, ups: str) -> List[str]:
        if ups not in self.variables:
            return ["ERR UNKNOWN-UPS"]
        lines = [f"BEGIN LIST VAR {ups}"]
        lines += [f"VAR {ups} {name} {quote(value)}" for name, value in self.variables[ups].items()]
        lines += self.stray_lines
        lines.append(f"END LIST VAR {ups}")
        return lines


@pytest.fixture
def ups_variables():
    return {
        "ups1": {
            "ups.status": "OL",
            "battery.charge": "100",
            "battery.runtime": "3600",
            "ups.load": "23",
            "ups.mfr": "EATON",
            "ambient.temperature": "24.5",
        },
        "ups2": {
            "ups.status": "OB LB",
            "battery.charge": "12",
        },
    }


@pytest_asyncio.fixture
async def upsd(ups_variables):
    server = FakeUpsd(
        devices={"ups1": "Desc 1", "ups2": "Desc 2"},
        variables=ups_variables,
        users={"monitor": "secret"},
    )
    await server.start()
    yield server
    await server.close()
