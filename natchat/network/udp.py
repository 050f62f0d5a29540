"""
UDP socket helpers shared by the introducer and the peer.
"""

import logging
import socket

from ..exceptions import TransportError
from .endpoint import Endpoint, parse_listen

logger = logging.getLogger(__name__)


def bind_udp(listen: str) -> socket.socket:
    """
    Create a non-blocking IPv4 UDP socket bound to a listen address.

    Args:
        listen: "host:port", empty host for all interfaces, port 0 for ephemeral

    Raises:
        TransportError: if the address is invalid or the bind fails
    """
    try:
        host, port = parse_listen(listen)
    except ValueError as e:
        raise TransportError(f"Invalid listen address {listen!r}: {e}") from e

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.setblocking(False)
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise TransportError(f"Cannot bind UDP {host}:{port}: {e}") from e

    logger.debug(f"UDP socket bound to {sock.getsockname()}")
    return sock


def local_endpoint(sock: socket.socket) -> Endpoint:
    """The endpoint a bound socket is listening on."""
    return Endpoint.from_address(sock.getsockname())
