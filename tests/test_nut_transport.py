"""
Tests for the line-oriented upsd transport.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nutview.nut.errors import NUTConnectionClosedError, NUTNetworkError, NUTProtocolError
from nutview.nut.transport import NUTTransport


def make_transport(data: bytes = b"", eof: bool = True, read_timeout=None):
    reader = asyncio.StreamReader()
    if data:
        reader.feed_data(data)
    if eof:
        reader.feed_eof()
    writer = MagicMock()
    writer.drain = AsyncMock()
    writer.wait_closed = AsyncMock()
    return NUTTransport(reader, writer, read_timeout=read_timeout, peer="test:3493"), writer


@pytest.mark.asyncio
async def test_send_command_appends_newline():
    transport, writer = make_transport()
    await transport.send_command("LIST UPS")
    writer.write.assert_called_once_with(b"LIST UPS\n")
    writer.drain.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("line", ["LIST VAR ups1\nLIST VAR ups2", "LIST UPS\r", "USERNAME a\rLOGOUT"])
async def test_send_command_rejects_line_breaks(line):
    transport, writer = make_transport()
    with pytest.raises(NUTProtocolError, match="line breaks"):
        await transport.send_command(line)
    writer.write.assert_not_called()
    assert not transport.closed


@pytest.mark.asyncio
async def test_send_command_rejected_password_is_masked():
    transport, _ = make_transport()
    with pytest.raises(NUTProtocolError) as exc_info:
        await transport.send_command("PASSWORD hunter2\nLOGOUT")
    assert exc_info.value.line == "PASSWORD ***"
    assert "hunter2" not in str(exc_info.value)


@pytest.mark.asyncio
async def test_send_command_write_failure():
    transport, writer = make_transport()
    writer.drain.side_effect = ConnectionResetError("reset by peer")
    with pytest.raises(NUTNetworkError, match="Failed to send command") as exc_info:
        await transport.send_command("LIST UPS")
    assert isinstance(exc_info.value.__cause__, ConnectionResetError)
    assert transport.closed


@pytest.mark.asyncio
async def test_read_line_strips_terminators():
    transport, _ = make_transport(b"OK\r\nBEGIN LIST UPS\n")
    assert await transport.read_line() == "OK"
    assert await transport.read_line() == "BEGIN LIST UPS"


@pytest.mark.asyncio
async def test_read_line_on_closed_socket():
    transport, writer = make_transport(b"")
    with pytest.raises(NUTConnectionClosedError):
        await transport.read_line()
    assert transport.closed
    writer.close.assert_called_once()

    # Every later call fails fast
    with pytest.raises(NUTConnectionClosedError):
        await transport.send_command("LIST UPS")


@pytest.mark.asyncio
async def test_read_line_timeout():
    transport, _ = make_transport(eof=False, read_timeout=0.05)
    with pytest.raises(NUTNetworkError, match="No response"):
        await transport.read_line()
    assert transport.closed


@pytest.mark.asyncio
async def test_expect_ok():
    transport, _ = make_transport(b"OK\n")
    await transport.expect_ok()


@pytest.mark.asyncio
async def test_expect_ok_rejects_error_reply():
    transport, _ = make_transport(b"ERR ACCESS-DENIED\n")
    with pytest.raises(NUTProtocolError) as exc_info:
        await transport.expect_ok()
    assert exc_info.value.line == "ERR ACCESS-DENIED"
    assert exc_info.value.error_code == "ACCESS-DENIED"


@pytest.mark.asyncio
async def test_close_is_idempotent():
    transport, writer = make_transport()
    transport.close()
    transport.close()
    await transport.wait_closed()
    writer.close.assert_called_once()
    assert transport.closed


@pytest.mark.asyncio
async def test_open_connection_refused():
    with patch("asyncio.open_connection", AsyncMock(side_effect=ConnectionRefusedError("refused"))):
        with pytest.raises(NUTNetworkError, match="Failed to connect to nowhere:3493"):
            await NUTTransport.open("nowhere", 3493)


@pytest.mark.asyncio
async def test_open_connection_timeout():
    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    with patch("asyncio.open_connection", hang):
        with pytest.raises(NUTNetworkError, match="timed out"):
            await NUTTransport.open("slowhost", 3493, connect_timeout=0.05)
