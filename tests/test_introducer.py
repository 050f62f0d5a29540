"""
Tests for the introducer: control handling and the UDP server.
"""

import asyncio
import socket

import pytest

from natchat.config import INTRODUCER_RECV_BUFFER
from natchat.exceptions import TransportError
from natchat.introducer import Introducer, IntroducerProtocol
from natchat.network.endpoint import Endpoint

A = Endpoint.parse("198.51.100.1:40001")
B = Endpoint.parse("198.51.100.2:40002")
C = Endpoint.parse("198.51.100.3:40003")


def wire(outbound):
    return [(o.destination.key, o.message.encode()) for o in outbound]


class TestIntroducerProtocol:
    """Tests for JOIN / LEAVE handling without sockets."""

    def test_first_join_only_youare(self):
        """The first member only learns its own endpoint."""
        protocol = IntroducerProtocol()
        out = protocol.handle("JOIN r1 Alice", A)
        assert wire(out) == [(A.key, f"YOUARE {A.key}")]

    def test_second_join(self):
        """Second member gets YOUARE then PEERS; the first gets PEERJOIN."""
        protocol = IntroducerProtocol()
        protocol.handle("JOIN r1 Alice", A)
        out = protocol.handle("JOIN r1 Bob", B)

        assert wire(out) == [
            (B.key, f"YOUARE {B.key}"),
            (B.key, f"PEERS {A.key}"),
            (A.key, f"PEERJOIN Bob {B.key}"),
        ]

    def test_third_join_broadcasts_to_all_others(self):
        protocol = IntroducerProtocol()
        protocol.handle("JOIN r1 Alice", A)
        protocol.handle("JOIN r1 Bob", B)
        out = protocol.handle("JOIN r1 Carol", C)

        assert wire(out) == [
            (C.key, f"YOUARE {C.key}"),
            (C.key, f"PEERS {A.key},{B.key}"),
            (A.key, f"PEERJOIN Carol {C.key}"),
            (B.key, f"PEERJOIN Carol {C.key}"),
        ]

    def test_join_missing_name_is_dropped(self):
        """JOIN without a name produces no reply and no registry change."""
        protocol = IntroducerProtocol()
        assert protocol.handle("JOIN r1", A) == []
        assert len(protocol.registry) == 0

    def test_unknown_commands_ignored(self):
        protocol = IntroducerProtocol()
        for line in ["", "HELLO", "PEERS 1.1.1.1:1", "MSG hi", b"\xff\xff"]:
            assert protocol.handle(line, A) == []
        assert len(protocol.registry) == 0

    def test_leave_sends_nothing(self):
        """LEAVE updates the registry silently."""
        protocol = IntroducerProtocol()
        protocol.handle("JOIN r1 Alice", A)
        protocol.handle("JOIN r1 Bob", B)

        assert protocol.handle("LEAVE r1", B) == []
        assert [m.key for m in protocol.registry.members("r1")] == [A.key]

    def test_leave_last_member_then_rejoin(self):
        protocol = IntroducerProtocol()
        protocol.handle("JOIN r1 Alice", A)
        protocol.handle("LEAVE r1", A)
        assert "r1" not in protocol.registry

        out = protocol.handle("JOIN r1 Bob", B)
        assert wire(out) == [(B.key, f"YOUARE {B.key}")]

    def test_lowercase_join(self):
        protocol = IntroducerProtocol()
        out = protocol.handle("join r1 Alice", A)
        assert len(out) == 1


async def _recv(sock: socket.socket, timeout: float = 2.0) -> str:
    loop = asyncio.get_event_loop()
    data, _ = await asyncio.wait_for(loop.sock_recvfrom(sock, 4096), timeout=timeout)
    return data.decode()


def _client() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setblocking(False)
    sock.bind(("127.0.0.1", 0))
    return sock


class TestIntroducerServer:
    """Tests for the UDP introducer over loopback."""

    @pytest.mark.asyncio
    async def test_start_stop(self):
        """Test introducer lifecycle."""
        introducer = Introducer(listen="127.0.0.1:0")
        endpoint = await introducer.start()

        assert endpoint.host == "127.0.0.1"
        assert endpoint.port > 0
        assert introducer.local_endpoint == endpoint

        await introducer.stop()
        assert introducer.sock is None

    @pytest.mark.asyncio
    async def test_bind_failure_is_transport_error(self):
        """A port already in use is a fatal transport error."""
        first = Introducer(listen="127.0.0.1:0")
        endpoint = await first.start()
        try:
            second = Introducer(listen=f"127.0.0.1:{endpoint.port}")
            with pytest.raises(TransportError):
                await second.start()
        finally:
            await first.stop()

    @pytest.mark.asyncio
    async def test_two_peer_scenario(self):
        """Alice then Bob join r1; check every datagram each side gets."""
        introducer = Introducer(listen="127.0.0.1:0")
        server = await introducer.start()
        loop = asyncio.get_event_loop()
        alice, bob = _client(), _client()
        a_ep = Endpoint.from_address(alice.getsockname())
        b_ep = Endpoint.from_address(bob.getsockname())

        try:
            await loop.sock_sendto(alice, b"JOIN r1 Alice", server.address)
            assert await _recv(alice) == f"YOUARE {a_ep}"

            # nobody else in the room yet
            with pytest.raises(asyncio.TimeoutError):
                await _recv(alice, timeout=0.2)

            await loop.sock_sendto(bob, b"JOIN r1 Bob", server.address)
            assert await _recv(bob) == f"YOUARE {b_ep}"
            assert await _recv(bob) == f"PEERS {a_ep}"
            assert await _recv(alice) == f"PEERJOIN Bob {b_ep}"

            assert introducer.rooms() == {"r1": 2}
            assert introducer.members("r1") == sorted([a_ep, b_ep], key=lambda e: e.key)
        finally:
            alice.close()
            bob.close()
            await introducer.stop()

    @pytest.mark.asyncio
    async def test_malformed_join_gets_no_reply(self):
        introducer = Introducer(listen="127.0.0.1:0")
        server = await introducer.start()
        loop = asyncio.get_event_loop()
        client = _client()

        try:
            await loop.sock_sendto(client, b"JOIN r1", server.address)
            with pytest.raises(asyncio.TimeoutError):
                await _recv(client, timeout=0.3)
            assert introducer.rooms() == {}
        finally:
            client.close()
            await introducer.stop()

    @pytest.mark.asyncio
    async def test_oversize_join_is_truncated(self):
        """A JOIN longer than the receive buffer is cut short and still handled."""
        introducer = Introducer(listen="127.0.0.1:0")
        server = await introducer.start()
        loop = asyncio.get_event_loop()
        alice, bob = _client(), _client()
        b_ep = Endpoint.from_address(bob.getsockname())

        try:
            await loop.sock_sendto(alice, b"JOIN r1 Alice", server.address)
            await _recv(alice)

            prefix = b"JOIN r1 "
            await loop.sock_sendto(bob, prefix + b"B" * 3000, server.address)
            assert await _recv(bob) == f"YOUARE {b_ep}"

            name = "B" * (INTRODUCER_RECV_BUFFER - len(prefix))
            assert await _recv(alice) == f"PEERJOIN {name} {b_ep}"
            assert introducer.rooms() == {"r1": 2}
        finally:
            alice.close()
            bob.close()
            await introducer.stop()

    @pytest.mark.asyncio
    async def test_leave_over_udp(self):
        introducer = Introducer(listen="127.0.0.1:0")
        server = await introducer.start()
        loop = asyncio.get_event_loop()
        client = _client()

        try:
            await loop.sock_sendto(client, b"JOIN lobby Alice", server.address)
            await _recv(client)
            assert introducer.rooms() == {"lobby": 1}

            await loop.sock_sendto(client, b"LEAVE lobby", server.address)
            for _ in range(50):
                if not introducer.rooms():
                    break
                await asyncio.sleep(0.02)
            assert introducer.rooms() == {}
        finally:
            client.close()
            await introducer.stop()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
