import logging
import sys
from typing import Optional

import click
from rich.table import Table

from nutview.nut.controller import ConnectionController
from nutview.nut.events import DevicesDiscovered, PollFailed, SnapshotReady
from nutview.nut.models import ConnectionParameters, DeviceSummary
from nutview.utils.logging import setup_logging

from .utils import connection_options, console, handle_async_command, nut_session

SUMMARY_FIELDS = (
    ("Status", "status"),
    ("Model", "model"),
    ("Manufacturer", "manufacturer"),
    ("Serial", "serial"),
    ("Type", "ups_type"),
    ("Load (%)", "load_percent"),
    ("Real power (W)", "realpower_watts"),
    ("Battery charge (%)", "battery_charge_percent"),
    ("Battery runtime (s)", "battery_runtime_seconds"),
    ("Battery voltage (V)", "battery_voltage"),
    ("Input voltage (V)", "input_voltage"),
    ("Output voltage (V)", "output_voltage"),
    ("Input frequency (Hz)", "input_frequency_hz"),
    ("Output frequency (Hz)", "output_frequency_hz"),
)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.option('--trace', is_flag=True, help='Log every protocol line sent to and received from upsd.')
@click.pass_context
def app(ctx, verbose, quiet, trace):
    """
    nutview: watch UPS devices on a NUT server.
    """
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet

    if verbose:
        setup_logging(logging.DEBUG, trace_traffic=trace or None)
    elif quiet:
        setup_logging(logging.ERROR, trace_traffic=trace or None)
    else:
        setup_logging(trace_traffic=trace or None)


def summary_table(summary: DeviceSummary) -> Table:
    table = Table(title=summary.ups_name)
    table.add_column("Variable", style="cyan")
    table.add_column("Value")
    for label, field in SUMMARY_FIELDS:
        value = getattr(summary, field)
        if value is not None:
            table.add_row(label, value)
    for key, value in summary.extra:
        table.add_row(key, value, style="dim")
    return table


@app.command()
@connection_options
@handle_async_command
async def devices(host: str, port: int, username: str, password: str) -> None:
    """Lists the UPS devices known to the server."""
    params = ConnectionParameters(host=host, port=port, username=username, password=password)
    async with nut_session(params) as client:
        records = await client.list_ups()

    table = Table(title=f"UPS devices on {host}:{port}")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for record in records:
        table.add_row(record.name, record.description)
    console.print(table)


@app.command(name='vars')
@click.argument('ups_name')
@connection_options
@handle_async_command
async def vars_(ups_name: str, host: str, port: int, username: str, password: str) -> None:
    """Shows every variable of one UPS."""
    params = ConnectionParameters(host=host, port=port, username=username, password=password)
    async with nut_session(params) as client:
        summary = await client.get_ups_info(ups_name)
    console.print(summary_table(summary))


@app.command()
@connection_options
@click.option('--interval', type=float, default=None, help='Seconds between polls.')
@click.option('--ups', 'ups_name', default=None, help='Only show this UPS.')
@handle_async_command
async def watch(
    host: str,
    port: int,
    username: str,
    password: str,
    interval: Optional[float],
    ups_name: Optional[str],
) -> None:
    """Polls the server and prints every snapshot until interrupted."""
    params = ConnectionParameters(host=host, port=port, username=username, password=password)
    controller = ConnectionController(poll_interval=interval)
    session = await controller.connect(params)
    if session is None:
        console.print(f"[red]❌ Connection failed: {controller.error}[/red]")
        sys.exit(1)

    failed = False
    try:
        async for event in session.events():
            if isinstance(event, DevicesDiscovered):
                names = ", ".join(device.name for device in event.devices) or "none"
                console.print(f"[bold blue]Watching UPS devices: {names}[/bold blue]")
            elif isinstance(event, SnapshotReady):
                snapshot = event.snapshot
                console.rule(snapshot.taken_at.strftime("%Y-%m-%d %H:%M:%S %Z"))
                for name, summary in snapshot.summaries().items():
                    if ups_name is None or name == ups_name:
                        console.print(summary_table(summary))
            elif isinstance(event, PollFailed):
                console.print(f"[red]❌ Polling stopped: {event.message}[/red]")
                failed = True
    finally:
        await controller.aclose()

    if failed:
        sys.exit(1)


if __name__ == '__main__':
    app()
