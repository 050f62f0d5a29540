"""
Network endpoints and the peer-side endpoint set.

An endpoint is identified by its canonical "ip:port" string. Two endpoints
with the same canonical string are the same peer, however they were
obtained (socket address, PEERS list, manual flag).
"""

import asyncio
import ipaddress
import logging
import socket
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple, Union

from ..exceptions import EndpointError

logger = logging.getLogger(__name__)


def _split_host_port(text: str) -> Tuple[str, str]:
    """Split "host:port" / "[v6]:port" into its parts."""
    host, sep, port = text.strip().rpartition(":")
    if not sep:
        raise EndpointError(text, "missing port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def _parse_port(text: str, port: str) -> int:
    try:
        value = int(port)
    except ValueError:
        raise EndpointError(text, "invalid port") from None
    if not 0 <= value <= 65535:
        raise EndpointError(text, "port out of range")
    return value


@dataclass(frozen=True)
class Endpoint:
    """A resolved UDP address. Immutable, compared by canonical string."""
    host: str
    port: int

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def key(self) -> str:
        """Canonical "ip:port" identity."""
        return str(self)

    @property
    def address(self) -> Tuple[str, int]:
        """Socket address tuple for sendto()."""
        return (self.host, self.port)

    @classmethod
    def parse(cls, text: str) -> "Endpoint":
        """Parse a numeric "ip:port" token. Hostnames are rejected."""
        host, port = _split_host_port(text)
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            raise EndpointError(text, "not a numeric address") from None
        return cls(host=str(ip), port=_parse_port(text, port))

    @classmethod
    def from_address(cls, address: tuple) -> "Endpoint":
        """Build from a socket address as returned by recvfrom()."""
        host, port = address[0], address[1]
        return cls(host=str(ipaddress.ip_address(host)), port=int(port))


async def resolve_endpoint(text: str, family: int = socket.AF_INET) -> Endpoint:
    """
    Resolve "host:port" to an Endpoint.

    Numeric addresses are parsed directly; anything else goes through
    getaddrinfo on the running loop.

    Raises:
        EndpointError: if the token cannot be parsed or resolved
    """
    try:
        return Endpoint.parse(text)
    except EndpointError:
        pass

    host, port = _split_host_port(text)
    port_num = _parse_port(text, port)
    if not host:
        raise EndpointError(text, "missing host")

    loop = asyncio.get_event_loop()
    try:
        infos = await loop.getaddrinfo(host, port_num, family=family, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise EndpointError(text, f"cannot resolve ({e})") from None

    if not infos:
        raise EndpointError(text, "no address found")
    return Endpoint.from_address(infos[0][4])


def parse_listen(text: str) -> Tuple[str, int]:
    """
    Parse a listen address such as ":3478", "0.0.0.0:0" or "127.0.0.1:5000".

    An empty host means all interfaces.
    """
    host, port = _split_host_port(text)
    return (host or "0.0.0.0", _parse_port(text, port))


class EndpointSet:
    """
    Known remote endpoints, deduplicated by canonical string.

    The receive task writes while the dispatcher and the interactive loop
    read, so the map is guarded by a lock. There is no removal: endpoints
    that left the room stay in the set.
    """

    def __init__(self):
        self._endpoints: Dict[str, Endpoint] = {}
        self._lock = threading.Lock()

    def add(self, endpoint: Endpoint) -> bool:
        """Upsert an endpoint. Returns True if it was not known before."""
        with self._lock:
            is_new = endpoint.key not in self._endpoints
            self._endpoints[endpoint.key] = endpoint
        if is_new:
            logger.debug(f"Learned endpoint {endpoint}")
        return is_new

    def list(self) -> List[Endpoint]:
        """Snapshot sorted by canonical string."""
        with self._lock:
            snapshot = list(self._endpoints.values())
        return sorted(snapshot, key=lambda ep: ep.key)

    def __contains__(self, item: Union[Endpoint, str]) -> bool:
        key = item.key if isinstance(item, Endpoint) else str(item)
        with self._lock:
            return key in self._endpoints

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self.list())
