"""
Network primitives for natchat.

This module provides:
- Endpoint values and the concurrency-safe endpoint set
- The line codec for the rendezvous and hole-punching protocol
- UDP socket binding shared by introducer and peer
"""

from .endpoint import (
    Endpoint,
    EndpointSet,
    resolve_endpoint,
    parse_listen,
)
from .protocol import (
    Join,
    Leave,
    YouAre,
    Peers,
    PeerJoin,
    Punch,
    PunchAck,
    Chat,
    Message,
    decode,
    encode,
)
from .udp import bind_udp, local_endpoint

__all__ = [
    "Endpoint",
    "EndpointSet",
    "resolve_endpoint",
    "parse_listen",
    "Join",
    "Leave",
    "YouAre",
    "Peers",
    "PeerJoin",
    "Punch",
    "PunchAck",
    "Chat",
    "Message",
    "decode",
    "encode",
    "bind_udp",
    "local_endpoint",
]
