"""
A chat peer.

One UDP socket carries everything: the JOIN to the introducer and all
peer-to-peer traffic. That is what makes the address the introducer
observes the same one other peers punch toward.

Inbound datagrams are classified in this order:
1. From the introducer: YOUARE / PEERS / PEERJOIN
2. PUNCH-ACK: learn the sender
3. PUNCH: learn the sender and acknowledge once
4. MSG: chat for the display
5. Anything else: debug line for the display
"""

import asyncio
import logging
import socket
import time
from typing import List, Optional

from ..config import PEER_RECV_BUFFER, PunchConfig
from ..exceptions import EndpointError, TransportError
from ..network.endpoint import Endpoint, EndpointSet, resolve_endpoint
from ..network.protocol import (
    Chat,
    Join,
    Leave,
    Message,
    PeerJoin,
    Peers,
    Punch,
    PunchAck,
    YouAre,
    decode,
    encode,
)
from ..network.udp import bind_udp, local_endpoint
from .dispatcher import MessageDispatcher
from .events import (
    ChatReceived,
    DebugLine,
    DisplaySink,
    Notice,
    PeerJoined,
    PublicEndpoint,
    emit,
    log_sink,
)
from .punch import HolePuncher

logger = logging.getLogger(__name__)


def default_name() -> str:
    """Fallback display name, e.g. "peer-4821"."""
    return f"peer-{int(time.time()) % 10000}"


class Peer:
    """
    A peer process: socket, endpoint set, punch scheduler and dispatcher.

    A failure of the receive loop is recorded once; the interactive loop
    calls raise_if_failed() after each user action.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        room: str = "default",
        listen: str = ":0",
        introducer: Optional[str] = None,
        manual: Optional[str] = None,
        punch_config: Optional[PunchConfig] = None,
        sink: Optional[DisplaySink] = log_sink,
    ):
        """
        Initialize a peer.

        Args:
            name: Display name (peer-NNNN if empty)
            room: Room to join at the introducer
            listen: Local UDP listen address
            introducer: Introducer ip:port, or None to skip rendezvous
            manual: A peer ip:port to punch directly
            punch_config: Burst/keepalive timing
            sink: Receives display events
        """
        self.name = name or default_name()
        self.room = room
        self.listen = listen
        self.introducer_address = introducer
        self.manual_address = manual
        self.sink = sink

        self.endpoints = EndpointSet()
        self.puncher = HolePuncher(self.send_message, punch_config)
        self.dispatcher = MessageDispatcher(self.name, self.endpoints, self.send_message, sink)

        self.introducer: Optional[Endpoint] = None
        self.sock: Optional[socket.socket] = None
        self._running = False
        self._receive_task: Optional[asyncio.Task] = None
        self._failure: Optional[TransportError] = None

    @property
    def local_endpoint(self) -> Optional[Endpoint]:
        if self.sock is None:
            return None
        return local_endpoint(self.sock)

    @property
    def failed(self) -> bool:
        return self._failure is not None

    def raise_if_failed(self) -> None:
        """Re-raise the receive loop's failure, if any."""
        if self._failure is not None:
            raise self._failure

    async def start(self) -> Endpoint:
        """
        Bind the socket, start receiving, join the room and punch the manual peer.

        Raises:
            TransportError: if the socket cannot be bound or the JOIN cannot be sent
            EndpointError: if the introducer address cannot be resolved
        """
        if self._running:
            return self.local_endpoint

        self.sock = bind_udp(self.listen)
        self._running = True
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.info(f"Peer {self.name} listening on UDP {self.local_endpoint}")

        try:
            if self.introducer_address:
                self.introducer = await resolve_endpoint(self.introducer_address)
                await self._join()
            if self.manual_address:
                await self._add_manual(self.manual_address)
        except Exception:
            await self.stop()
            raise

        return self.local_endpoint

    async def stop(self) -> None:
        """Stop punching and receiving and close the socket."""
        self._running = False

        await self.puncher.stop()

        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        if self.sock:
            self.sock.close()
            self.sock = None

    async def leave(self) -> None:
        """Tell the introducer we left the room. Other peers are not told."""
        if self.introducer is None or self.sock is None:
            return
        try:
            await self.send_message(Leave(self.room), self.introducer)
            logger.info(f"Left room {self.room!r}")
        except OSError as e:
            logger.debug(f"LEAVE failed: {e}")

    async def send(self, text: str) -> int:
        """Send a chat line to every known peer. Returns datagrams sent."""
        return await self.dispatcher.send(text)

    def peers(self) -> List[Endpoint]:
        """Known endpoints, sorted."""
        return self.endpoints.list()

    def add_peer(self, endpoint: Endpoint) -> bool:
        """
        Learn a candidate endpoint and start punching toward it.

        Returns:
            True if a new punch task was started
        """
        self.endpoints.add(endpoint)
        return self.puncher.start(endpoint)

    async def send_message(self, message: Message, endpoint: Endpoint) -> None:
        """Send one protocol message on the shared socket."""
        if self.sock is None:
            raise TransportError("Peer socket is closed")
        loop = asyncio.get_event_loop()
        await loop.sock_sendto(self.sock, encode(message), endpoint.address)

    async def _join(self) -> None:
        try:
            await self.send_message(Join(self.room, self.name), self.introducer)
        except OSError as e:
            raise TransportError(f"JOIN failed: {e}") from e
        logger.info(f"Sent JOIN {self.room} {self.name} to {self.introducer}")

    async def _add_manual(self, address: str) -> None:
        try:
            endpoint = await resolve_endpoint(address)
        except EndpointError as e:
            logger.warning(f"Manual address ignored: {e}")
            emit(self.sink, Notice(f"Invalid manual address: {e}"))
            return
        self.add_peer(endpoint)

    async def _receive_loop(self) -> None:
        loop = asyncio.get_event_loop()

        while self._running:
            try:
                data, addr = await loop.sock_recvfrom(self.sock, PEER_RECV_BUFFER)
            except OSError as e:
                if not self._running:
                    return
                self._running = False
                logger.error(f"Peer socket failed: {e}")
                self._failure = TransportError(f"Peer receive failed: {e}")
                return

            await self.handle_datagram(data, Endpoint.from_address(addr))

    async def handle_datagram(self, data: bytes, sender: Endpoint) -> None:
        """Classify and act on one inbound datagram."""
        line = data.decode("utf-8", errors="replace").strip()

        if self.introducer is not None and sender == self.introducer:
            await self._handle_introducer_line(line)
            return

        message = decode(line, ignore_case=False)

        if isinstance(message, PunchAck):
            self.endpoints.add(sender)
        elif isinstance(message, Punch):
            # learn the sender but leave burst-starting to introducer/manual discovery
            self.endpoints.add(sender)
            ack = PunchAck(self.name, time.monotonic_ns())
            try:
                await self.send_message(ack, sender)
            except OSError as e:
                logger.debug(f"PUNCH-ACK to {sender} failed: {e}")
        elif isinstance(message, Chat):
            emit(self.sink, ChatReceived(sender, message.name, message.text))
        else:
            emit(self.sink, DebugLine(sender, line))

    async def _handle_introducer_line(self, line: str) -> None:
        message = decode(line, ignore_case=False)

        if isinstance(message, YouAre):
            emit(self.sink, PublicEndpoint(message.endpoint))
        elif isinstance(message, Peers):
            for token in message.endpoints:
                endpoint = await self._resolve_candidate(token)
                if endpoint is not None:
                    self.add_peer(endpoint)
        elif isinstance(message, PeerJoin):
            endpoint = await self._resolve_candidate(message.endpoint)
            if endpoint is not None:
                self.add_peer(endpoint)
            emit(self.sink, PeerJoined(message.name, message.endpoint))
        else:
            logger.debug(f"Ignoring introducer line: {line!r}")

    async def _resolve_candidate(self, token: str) -> Optional[Endpoint]:
        try:
            return await resolve_endpoint(token)
        except EndpointError as e:
            logger.warning(f"Dropping candidate from introducer: {e}")
            return None
