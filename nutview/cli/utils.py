import asyncio
import functools
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import click
from rich.console import Console

from nutview.config import settings
from nutview.nut.client import NUTClient
from nutview.nut.errors import NUTError
from nutview.nut.models import ConnectionParameters

console = Console()
logger = logging.getLogger(__name__)


def handle_async_command(async_func):
    """Decorator to handle async CLI commands."""
    @functools.wraps(async_func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(async_func(*args, **kwargs))
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper


def connection_options(func):
    """Add --host/--port/--username/--password, defaulting to the settings."""
    func = click.option('--password', default=settings.NUT_PASSWORD, help='Password for PASSWORD.')(func)
    func = click.option('--username', default=settings.NUT_USERNAME, help='User for USERNAME; empty skips login.')(func)
    func = click.option('--port', default=settings.NUT_PORT, show_default=True, help='NUT server port.')(func)
    func = click.option('--host', default=settings.NUT_HOST, show_default=True, help='NUT server host.')(func)
    return func


@asynccontextmanager
async def nut_session(params: ConnectionParameters) -> AsyncIterator[NUTClient]:
    """Connect for a single command and log out afterwards."""
    client = await NUTClient.connect(params)
    try:
        yield client
    finally:
        if not client.closed:
            try:
                await client.logout()
            except NUTError as e:
                logger.warning("LOGOUT failed: %s", e)
