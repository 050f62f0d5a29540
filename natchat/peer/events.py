"""
Events a peer reports to its display.

The peer never prints. Everything the user should see is handed to a
display sink as one of these events; the CLI renders them with rich.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..network.endpoint import Endpoint

logger = logging.getLogger(__name__)


@dataclass
class ChatReceived:
    """A MSG line from another peer."""
    sender: Endpoint
    name: str
    text: str


@dataclass
class PeerJoined:
    """The introducer announced a new room member."""
    name: str
    endpoint: str


@dataclass
class PublicEndpoint:
    """The introducer told us how it sees our address."""
    endpoint: str


@dataclass
class DebugLine:
    """A datagram that matched no known message."""
    sender: Endpoint
    line: str


@dataclass
class Notice:
    """Informational message from the peer itself."""
    text: str


PeerEvent = Union[ChatReceived, PeerJoined, PublicEndpoint, DebugLine, Notice]

DisplaySink = Callable[[PeerEvent], None]


def log_sink(event: PeerEvent) -> None:
    """Default sink: write events to the log."""
    if isinstance(event, ChatReceived):
        logger.info(f"[{event.sender}] {event.name}: {event.text}")
    elif isinstance(event, PeerJoined):
        logger.info(f"Peer joined: {event.name} {event.endpoint}")
    elif isinstance(event, PublicEndpoint):
        logger.info(f"Public endpoint: {event.endpoint}")
    elif isinstance(event, DebugLine):
        logger.debug(f"[RECV {event.sender}] {event.line}")
    else:
        logger.info(event.text)


def emit(sink: Optional[DisplaySink], event: PeerEvent) -> None:
    """Deliver an event, keeping a faulty sink from killing the caller."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception as e:
        logger.error(f"Error in display sink: {e}")
