"""
Wire codec for the rendezvous and hole-punching protocol.

Every message is one whitespace-delimited UTF-8 text line per datagram:

    JOIN <room> <name>            peer -> introducer
    LEAVE <room>                  peer -> introducer
    YOUARE <ip:port>              introducer -> peer
    PEERS <ep1,ep2,...>           introducer -> peer
    PEERJOIN <name> <ip:port>     introducer -> peers
    PUNCH hello <n>               peer -> peer
    PUNCH keepalive               peer -> peer
    PUNCH-ACK <name> <ts>         peer -> peer
    MSG <name>: <text>            peer -> peer

Decoding never raises: anything malformed comes back as None.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

JOIN = "JOIN"
LEAVE = "LEAVE"
YOUARE = "YOUARE"
PEERS = "PEERS"
PEERJOIN = "PEERJOIN"
PUNCH = "PUNCH"
PUNCH_ACK = "PUNCH-ACK"
MSG = "MSG"

PUNCH_HELLO = "hello"
PUNCH_KEEPALIVE = "keepalive"


@dataclass
class Join:
    room: str
    name: str

    def encode(self) -> str:
        return f"{JOIN} {self.room} {self.name}"


@dataclass
class Leave:
    room: str

    def encode(self) -> str:
        return f"{LEAVE} {self.room}"


@dataclass
class YouAre:
    """The sender's public endpoint as observed by the introducer."""
    endpoint: str

    def encode(self) -> str:
        return f"{YOUARE} {self.endpoint}"


@dataclass
class Peers:
    """Snapshot of the other members of a room."""
    endpoints: List[str] = field(default_factory=list)

    def encode(self) -> str:
        return f"{PEERS} {','.join(self.endpoints)}"


@dataclass
class PeerJoin:
    name: str
    endpoint: str

    def encode(self) -> str:
        return f"{PEERJOIN} {self.name} {self.endpoint}"


@dataclass
class Punch:
    """NAT binding probe. Burst probes carry a sequence number."""
    kind: str = PUNCH_KEEPALIVE
    seq: Optional[int] = None

    @classmethod
    def hello(cls, seq: int) -> "Punch":
        return cls(kind=PUNCH_HELLO, seq=seq)

    @classmethod
    def keepalive(cls) -> "Punch":
        return cls(kind=PUNCH_KEEPALIVE)

    def encode(self) -> str:
        if self.seq is None:
            return f"{PUNCH} {self.kind}"
        return f"{PUNCH} {self.kind} {self.seq}"


@dataclass
class PunchAck:
    name: str = ""
    timestamp: Optional[int] = None

    def encode(self) -> str:
        parts = [PUNCH_ACK, self.name]
        if self.timestamp is not None:
            parts.append(str(self.timestamp))
        return " ".join(p for p in parts if p)


@dataclass
class Chat:
    name: str
    text: str

    @property
    def body(self) -> str:
        """Everything after the MSG prefix."""
        if not self.name:
            return self.text
        return f"{self.name}: {self.text}"

    def encode(self) -> str:
        return f"{MSG} {self.body}"


Message = Union[Join, Leave, YouAre, Peers, PeerJoin, Punch, PunchAck, Chat]


def _int_or_none(token: str) -> Optional[int]:
    try:
        return int(token)
    except ValueError:
        return None


def _decode_join(rest: str) -> Optional[Join]:
    fields = rest.split()
    if len(fields) < 2:
        return None
    return Join(room=fields[0], name=fields[1])


def _decode_leave(rest: str) -> Optional[Leave]:
    fields = rest.split()
    if not fields:
        return None
    return Leave(room=fields[0])


def _decode_youare(rest: str) -> Optional[YouAre]:
    rest = rest.strip()
    if not rest:
        return None
    return YouAre(endpoint=rest)


def _decode_peers(rest: str) -> Optional[Peers]:
    tokens = [t.strip() for t in rest.split(",")]
    return Peers(endpoints=[t for t in tokens if t])


def _decode_peerjoin(rest: str) -> Optional[PeerJoin]:
    fields = rest.split()
    if len(fields) < 2:
        return None
    return PeerJoin(name=fields[0], endpoint=fields[1])


def _decode_punch(rest: str) -> Punch:
    fields = rest.split()
    kind = fields[0] if fields else ""
    seq = _int_or_none(fields[1]) if len(fields) > 1 else None
    return Punch(kind=kind, seq=seq)


def _decode_punch_ack(rest: str) -> PunchAck:
    fields = rest.split()
    name = fields[0] if fields else ""
    timestamp = _int_or_none(fields[1]) if len(fields) > 1 else None
    return PunchAck(name=name, timestamp=timestamp)


def _decode_chat(rest: str) -> Optional[Chat]:
    if not rest:
        return None
    name, sep, text = rest.partition(": ")
    if not sep:
        return Chat(name="", text=rest)
    return Chat(name=name, text=text)


_DECODERS: Dict[str, Callable[[str], Optional[Message]]] = {
    JOIN: _decode_join,
    LEAVE: _decode_leave,
    YOUARE: _decode_youare,
    PEERS: _decode_peers,
    PEERJOIN: _decode_peerjoin,
    PUNCH: _decode_punch,
    PUNCH_ACK: _decode_punch_ack,
    MSG: _decode_chat,
}


def decode(line: Union[str, bytes], ignore_case: bool = True) -> Optional[Message]:
    """
    Decode one protocol line.

    Unknown commands and lines missing required fields decode to None.

    Args:
        line: One datagram payload
        ignore_case: Match the command word case-insensitively (the
            introducer does; peers match exact upper-case commands)
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line:
        return None

    parts = line.split(None, 1)
    command = parts[0]
    rest = parts[1] if len(parts) > 1 else ""
    if ignore_case:
        command = command.upper()
    decoder = _DECODERS.get(command)
    if decoder is None:
        return None
    return decoder(rest)


def encode(message: Message) -> bytes:
    """Encode a message as a datagram payload."""
    return message.encode().encode("utf-8")
