"""
Logging setup for nutview.

Lifecycle messages (connects, poller start/stop, failures) go to the
``nutview`` package logger. Every protocol line sent or received goes to a
separate traffic logger, so a session can be traced without turning on
DEBUG for everything else. Passwords are masked before they reach it.

Defaults come from ``settings``:
- NUTVIEW_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
- NUTVIEW_LOG_FORMAT: text|json (default: text)
- NUTVIEW_LOG_TRAFFIC: true|false (default: false)
"""
from __future__ import annotations

import logging
from typing import IO, Optional, Union

from pythonjsonlogger.json import JsonFormatter

from ..config import Settings, settings

PACKAGE_LOGGER = "nutview"
TRAFFIC_LOGGER = "nutview.traffic"

_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """Turn a level name such as ``"debug"`` or a number into a logging level."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else default


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return JsonFormatter(
            fmt=_JSON_FORMAT,
            rename_fields={"levelname": "level", "name": "logger"},
        )
    return logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")


def setup_logging(
    level: Union[int, str, None] = None,
    *,
    trace_traffic: Optional[bool] = None,
    config: Settings = settings,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Configure console logging for the nutview package.

    Safe to call more than once: the handler installed by an earlier call is
    replaced, never duplicated. Handlers on the root logger are left alone.

    Args:
        level: Level for lifecycle messages. Defaults to ``config.LOG_LEVEL``.
        trace_traffic: Log every protocol line at DEBUG. Defaults to
            ``config.LOG_TRAFFIC``.
        config: Settings to read the defaults from.
        stream: Where to write; stderr if omitted.

    Returns:
        The configured package logger.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_nutview_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler._nutview_handler = True
    handler.setFormatter(build_formatter(config.LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(resolve_level(level if level is not None else config.LOG_LEVEL))
    package_logger.propagate = False

    if trace_traffic is None:
        trace_traffic = config.LOG_TRAFFIC
    # Traffic is silent unless asked for, whatever the lifecycle level is
    logging.getLogger(TRAFFIC_LOGGER).setLevel(logging.DEBUG if trace_traffic else logging.WARNING)

    return package_logger
