"""
Line-level helpers for the upsd text protocol.

upsd answers list commands with a BEGIN line, one body line per item and an
END line. String fields in body lines are wrapped in double quotes, with
embedded quotes and backslashes escaped by a leading backslash.
"""

import re
from typing import Optional, Tuple

from .errors import NUTProtocolError

LIST_UPS_BEGIN = "BEGIN LIST UPS"
LIST_UPS_END = "END LIST UPS"
LIST_VAR_BEGIN = "BEGIN LIST VAR"
LIST_VAR_END = "END LIST VAR"

_ESCAPED = re.compile(r'\\(["\\])')


def quote(value: str) -> str:
    """Escape a value the way upsd does and wrap it in double quotes."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def unquote(raw: str) -> str:
    """
    Strip the outer double quotes of a field and unescape its contents.

    Unescaping runs in a single left-to-right pass, so a backslash produced
    by unescaping is never consumed again. Fields that are not quoted are
    returned unchanged.
    """
    if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"'):
        return _ESCAPED.sub(r"\1", raw[1:-1])
    return raw


def parse_ups_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Parse a ``UPS <name> "<description>"`` body line.

    Returns:
        The (name, description) pair, or None if the line is not a UPS line.

    Raises:
        NUTProtocolError: If the line is a UPS line with missing fields.
    """
    if not line.startswith("UPS "):
        return None
    parts = line.split(" ", 2)
    if len(parts) < 3 or not parts[1]:
        raise NUTProtocolError(f"Malformed UPS line: {line}", line)
    return parts[1], unquote(parts[2])


def parse_var_line(line: str) -> Optional[Tuple[str, str, str]]:
    """
    Parse a ``VAR <ups> <name> "<value>"`` body line.

    Returns:
        The (ups, name, value) triple, or None if the line is not a VAR line.

    Raises:
        NUTProtocolError: If the line is a VAR line with missing fields.
    """
    if not line.startswith("VAR "):
        return None
    parts = line.split(" ", 3)
    if len(parts) < 4 or not parts[1] or not parts[2]:
        raise NUTProtocolError(f"Malformed VAR line: {line}", line)
    return parts[1], parts[2], unquote(parts[3])


def require_prefix(line: str, prefix: str) -> None:
    """Raise NUTProtocolError unless the line starts with the prefix."""
    if not line.startswith(prefix):
        raise NUTProtocolError(f"Unexpected response: {line}", line)
