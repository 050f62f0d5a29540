"""
Introducer (rendezvous) side of natchat.

Provides:
- Room registry
- Control-message handling (JOIN / LEAVE)
- The UDP introducer server
"""

from .registry import Room, RoomRegistry
from .server import Introducer, IntroducerProtocol, Outbound

__all__ = [
    "Room",
    "RoomRegistry",
    "Introducer",
    "IntroducerProtocol",
    "Outbound",
]
