"""
Exceptions raised by natchat.

Malformed protocol input is never an exception: decoders return None and
handlers drop the line. Only local problems surface as errors.
"""


class NatChatError(Exception):
    """Base exception for natchat errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(NatChatError):
    """The UDP socket could not be bound, read or written. Fatal."""


class EndpointError(NatChatError, ValueError):
    """An address token could not be parsed or resolved."""

    def __init__(self, address: str, reason: str = "invalid endpoint"):
        super().__init__(f"{reason}: {address!r}")
        self.address = address
