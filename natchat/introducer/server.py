"""
Introducer: the rendezvous side of the protocol.

The introducer never relays chat. It records the public source address of
each JOIN, tells the sender what that address is, hands it the current
room members and announces it to everyone already in the room:

    Peer A              Introducer              Peer B
      │── JOIN r1 Alice ──▶│                       │
      │◀─ YOUARE A ────────│                       │
      │                    │◀──── JOIN r1 Bob ─────│
      │                    │───── YOUARE B ───────▶│
      │                    │───── PEERS A ────────▶│
      │◀─ PEERJOIN Bob B ──│                       │

LEAVE only shrinks the registry; nobody is told.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import List, Optional, Set, Union

from ..config import INTRODUCER_RECV_BUFFER
from ..exceptions import TransportError
from ..network.endpoint import Endpoint
from ..network.protocol import Join, Leave, Message, PeerJoin, Peers, YouAre, decode, encode
from ..network.udp import bind_udp, local_endpoint
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


@dataclass
class Outbound:
    """A reply or broadcast the introducer has decided to send."""
    destination: Endpoint
    message: Message


class IntroducerProtocol:
    """
    Turns one inbound control line into registry updates and replies.

    No I/O happens here; the returned Outbound list is sent by the caller
    after the registry lock has been released.
    """

    def __init__(self, registry: Optional[RoomRegistry] = None):
        self.registry = registry or RoomRegistry()

    def handle(self, line: Union[str, bytes], sender: Endpoint) -> List[Outbound]:
        """
        Handle a datagram from sender.

        Returns:
            Messages to send, in order. Empty for malformed or unknown input.
        """
        message = decode(line)

        if isinstance(message, Join):
            return self._handle_join(message, sender)
        if isinstance(message, Leave):
            self._handle_leave(message, sender)
            return []

        logger.debug(f"Ignoring datagram from {sender}: {line!r}")
        return []

    def _handle_join(self, join: Join, sender: Endpoint) -> List[Outbound]:
        others = self.registry.join(join.room, sender)
        logger.info(f"{join.name} ({sender}) joined room {join.room!r} with {len(others)} other(s)")

        replies = [Outbound(sender, YouAre(sender.key))]
        if others:
            replies.append(Outbound(sender, Peers([ep.key for ep in others])))

        announcement = PeerJoin(join.name, sender.key)
        for member in self.registry.members(join.room, exclude=sender):
            replies.append(Outbound(member, announcement))

        return replies

    def _handle_leave(self, leave: Leave, sender: Endpoint) -> None:
        if self.registry.leave(leave.room, sender):
            logger.info(f"{sender} left room {leave.room!r}")


class Introducer:
    """
    UDP introducer server.

    One receive task reads datagrams; each datagram is handled in its own
    task so slow sends never hold up the read loop.
    """

    def __init__(self, listen: str = ":3478", registry: Optional[RoomRegistry] = None):
        """
        Initialize the introducer.

        Args:
            listen: UDP listen address, e.g. ":3478"
            registry: Room registry (a fresh one if not given)
        """
        self.listen = listen
        self.protocol = IntroducerProtocol(registry)
        self.sock: Optional[socket.socket] = None
        self._running = False
        self._receive_task: Optional[asyncio.Task] = None
        self._handlers: Set[asyncio.Task] = set()

    @property
    def registry(self) -> RoomRegistry:
        return self.protocol.registry

    @property
    def local_endpoint(self) -> Optional[Endpoint]:
        if self.sock is None:
            return None
        return local_endpoint(self.sock)

    async def start(self) -> Endpoint:
        """
        Bind the socket and start receiving.

        Raises:
            TransportError: if the socket cannot be bound
        """
        if self._running:
            return self.local_endpoint

        self.sock = bind_udp(self.listen)
        self._running = True
        self._receive_task = asyncio.create_task(self._receive_loop())

        endpoint = self.local_endpoint
        logger.info(f"Introducer listening on UDP {endpoint}")
        return endpoint

    async def serve_forever(self) -> None:
        """
        Run until stopped.

        Raises:
            TransportError: if the socket fails; the introducer is unusable afterwards
        """
        await self.start()
        await self._receive_task

    async def stop(self) -> None:
        """Stop receiving and close the socket."""
        self._running = False

        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except (asyncio.CancelledError, TransportError):
                # a transport failure was already logged and raised to serve_forever()
                pass
            self._receive_task = None

        for task in list(self._handlers):
            task.cancel()
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)

        if self.sock:
            self.sock.close()
            self.sock = None

    def rooms(self) -> dict:
        """Room name -> member count."""
        return self.registry.rooms()

    def members(self, room: str) -> List[Endpoint]:
        """Sorted members of a room."""
        return self.registry.members(room)

    async def _receive_loop(self) -> None:
        """Read datagrams and hand each to its own task."""
        loop = asyncio.get_event_loop()

        while self._running:
            try:
                data, addr = await loop.sock_recvfrom(self.sock, INTRODUCER_RECV_BUFFER)
            except OSError as e:
                if not self._running:
                    return
                self._running = False
                logger.error(f"Introducer socket failed: {e}")
                raise TransportError(f"Introducer receive failed: {e}") from e

            task = asyncio.create_task(self._handle_datagram(data, addr))
            self._handlers.add(task)
            task.add_done_callback(self._handlers.discard)

    async def _handle_datagram(self, data: bytes, addr: tuple) -> None:
        sender = Endpoint.from_address(addr)
        for outbound in self.protocol.handle(data, sender):
            await self._send(outbound)

    async def _send(self, outbound: Outbound) -> None:
        """Best-effort send; nothing is acknowledged or retried."""
        if self.sock is None:
            return
        loop = asyncio.get_event_loop()
        try:
            await loop.sock_sendto(self.sock, encode(outbound.message), outbound.destination.address)
        except OSError as e:
            logger.debug(f"Send to {outbound.destination} failed: {e}")
