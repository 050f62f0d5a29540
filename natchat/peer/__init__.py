"""
Peer side of natchat.

Provides:
- The peer node (shared socket, receive loop, classification)
- Hole-punch scheduling
- Chat fan-out
- Display events
"""

from .node import Peer, default_name
from .punch import HolePuncher
from .dispatcher import MessageDispatcher, NO_PEERS_NOTICE
from .events import (
    ChatReceived,
    PeerJoined,
    PublicEndpoint,
    DebugLine,
    Notice,
    PeerEvent,
    DisplaySink,
    log_sink,
)

__all__ = [
    # Node
    "Peer",
    "default_name",
    # Punching
    "HolePuncher",
    # Dispatch
    "MessageDispatcher",
    "NO_PEERS_NOTICE",
    # Events
    "ChatReceived",
    "PeerJoined",
    "PublicEndpoint",
    "DebugLine",
    "Notice",
    "PeerEvent",
    "DisplaySink",
    "log_sink",
]
