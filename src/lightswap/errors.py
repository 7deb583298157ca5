"""Exception taxonomy for swap operations.

InputValidationError is raised synchronously before any network call.
ServiceError and TransportError move a session to FAILED.
CryptoValidationError always fails closed before signature material exists.
ProtocolError is logged by the session and never changes its state.
"""

from typing import Optional


class LightswapError(Exception):
    """Base class for all swap errors."""
    pass


class InputValidationError(LightswapError, ValueError):
    """Raised when an amount or other user input is malformed or out of range."""
    pass


class ServiceError(LightswapError):
    """Raised when the swap service rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class TransportError(LightswapError):
    """Raised when an HTTP call or the event channel fails."""
    pass


class CryptoValidationError(LightswapError):
    """Raised on preimage mismatch or malformed script tree, key or nonce data."""
    pass


class ProtocolError(LightswapError):
    """Raised when an event is unparseable or out of sequence."""
    pass
