"""
natchat - serverless UDP chat with NAT hole punching

An introducer tells the members of a room each other's public UDP
endpoints; peers then punch through their NATs and chat directly.

Example:
    >>> from natchat import Peer
    >>> peer = Peer(name="Alice", room="r1", introducer="203.0.113.7:3478")
    >>> await peer.start()
    >>> await peer.send("hello")
"""

__version__ = "0.1.0"

from .config import Config, get_config
from .introducer import Introducer, RoomRegistry
from .network import Endpoint, EndpointSet
from .peer import Peer

__all__ = [
    "__version__",
    "Config",
    "get_config",
    "Introducer",
    "RoomRegistry",
    "Endpoint",
    "EndpointSet",
    "Peer",
]
