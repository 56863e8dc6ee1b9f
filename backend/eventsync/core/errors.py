"""
Error taxonomy for the sync engine.

Transport, protocol and decoding failures are recoverable: the local store is
left untouched and the caller may retry. Store failures mean the local
database itself is broken and the next run should fall back to a full resync.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for every failure the sync engine surfaces to callers."""

    kind = "sync"
    recoverable = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        return self.message


class TransportError(SyncError):
    """No connectivity, connection reset, DNS failure."""

    kind = "transport"

    @property
    def user_message(self) -> str:
        return f"{self.message}. Please check your connection and try again."


class SyncTimeoutError(TransportError):
    """The remote fetch did not complete within the caller's timeout."""

    kind = "timeout"

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class ProtocolError(SyncError):
    """The server answered with a non-2xx status."""

    kind = "protocol"

    def __init__(self, message: str, status_code: int, server_message: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message

    @property
    def user_message(self) -> str:
        if self.server_message:
            return self.server_message
        return f"Server returned status {self.status_code}. Please try again shortly."


class DecodingError(SyncError):
    """The response body did not match the expected shape."""

    kind = "decoding"

    def __init__(self, message: str, endpoint: str, details: Optional[list] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.details = details or []

    @property
    def user_message(self) -> str:
        return "Received unexpected data from the server. Please try again later."


class StoreError(SyncError):
    """The local store failed to commit (constraint violation, corrupt or full file)."""

    kind = "store"
    recoverable = False

    @property
    def user_message(self) -> str:
        return "Local event cache could not be updated. It will be rebuilt on the next sync."
