"""
Room registry for the introducer.

Maps room names to their member endpoints. A room exists from the first
JOIN that names it until its last member leaves.
"""

import logging
import threading
from typing import Dict, List, Optional

from ..network.endpoint import Endpoint

logger = logging.getLogger(__name__)


class Room:
    """Members of one room, keyed by canonical endpoint string."""

    def __init__(self, name: str):
        self.name = name
        self.members: Dict[str, Endpoint] = {}

    def __len__(self) -> int:
        return len(self.members)


class RoomRegistry:
    """
    Thread-safe room registry.

    One lock covers every room. It is held only for the map operations and
    the snapshot copy, never while sending.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def join(self, room: str, endpoint: Endpoint) -> List[Endpoint]:
        """
        Add (or re-add) an endpoint to a room.

        Returns:
            The other members of the room, sorted by canonical string
        """
        with self._lock:
            state = self._rooms.get(room)
            if state is None:
                state = Room(room)
                self._rooms[room] = state
                logger.info(f"Room {room!r} created")
            state.members[endpoint.key] = endpoint
            others = [ep for key, ep in state.members.items() if key != endpoint.key]
        return sorted(others, key=lambda ep: ep.key)

    def leave(self, room: str, endpoint: Endpoint) -> bool:
        """
        Remove an endpoint from a room, dropping the room once empty.

        Returns:
            True if the endpoint was a member
        """
        with self._lock:
            state = self._rooms.get(room)
            if state is None:
                return False
            removed = state.members.pop(endpoint.key, None) is not None
            if not state.members:
                del self._rooms[room]
                logger.info(f"Room {room!r} removed (empty)")
        return removed

    def members(self, room: str, exclude: Optional[Endpoint] = None) -> List[Endpoint]:
        """Sorted snapshot of a room's members, optionally without one endpoint."""
        with self._lock:
            state = self._rooms.get(room)
            if state is None:
                return []
            snapshot = [
                ep for key, ep in state.members.items()
                if exclude is None or key != exclude.key
            ]
        return sorted(snapshot, key=lambda ep: ep.key)

    def rooms(self) -> Dict[str, int]:
        """Room name -> member count."""
        with self._lock:
            return {name: len(state) for name, state in self._rooms.items()}

    def __contains__(self, room: str) -> bool:
        with self._lock:
            return room in self._rooms

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
