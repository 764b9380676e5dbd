"""
Exceptions raised by the NUT client.

Every error raised by the transport, the protocol parser or the client is a
subclass of NUTError, so callers can catch the whole family at once.
"""

from typing import Optional


class NUTError(Exception):
    """Base exception for NUT client errors."""
    pass


class NUTNetworkError(NUTError):
    """Exception for connect, read and write failures at the socket level."""
    pass


class NUTConnectionClosedError(NUTError):
    """Exception raised when the server closed the connection mid-response."""
    pass


class NUTProtocolError(NUTError):
    """
    Exception for responses that do not match the expected framing.

    Attributes:
        line: The raw line that could not be handled, if any.
    """

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line

    @property
    def error_code(self) -> Optional[str]:
        """The code of an ``ERR <code>`` reply, e.g. ``ACCESS-DENIED``."""
        if self.line and self.line.startswith("ERR "):
            parts = self.line.split()
            if len(parts) > 1:
                return parts[1]
        return None


class NUTAuthenticationError(NUTError):
    """Exception raised when the USERNAME/PASSWORD handshake is rejected."""
    pass
