from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


class LibreLinkUpError(Exception):
    """Base class for failures talking to the LibreLinkUp service."""
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class TransportError(LibreLinkUpError):
    """Network or IO failure: the request never produced an HTTP response."""


class ProtocolError(LibreLinkUpError):
    """Non-2xx response, or a body that is not the expected JSON envelope."""


class AuthError(LibreLinkUpError):
    """Login rejected, or a request made with a missing, stale or invalid ticket."""
    severity = ErrorSeverity.HIGH


class PersistenceError(Exception):
    """The encrypted credential store could not be read or written."""
    severity = ErrorSeverity.LOW


class NoReadingError(LibreLinkUpError):
    """The connections response carried no measurement to sync."""
