"""
Chat fan-out.
"""

import logging
from typing import Optional

from ..network.endpoint import EndpointSet
from ..network.protocol import Chat
from .events import DisplaySink, Notice, emit
from .punch import SendFunc

logger = logging.getLogger(__name__)

NO_PEERS_NOTICE = "(no peers connected yet; wait for the introducer or share your ip:port)"


class MessageDispatcher:
    """Sends a chat line to every known endpoint. Best effort, no retries."""

    def __init__(
        self,
        name: str,
        endpoints: EndpointSet,
        send: SendFunc,
        sink: Optional[DisplaySink] = None,
    ):
        self.name = name
        self.endpoints = endpoints
        self._send = send
        self._sink = sink

    async def send(self, text: str) -> int:
        """
        Send text as "MSG <name>: <text>" to every endpoint in the set.

        Returns:
            Number of datagrams handed to the socket
        """
        targets = self.endpoints.list()
        if not targets:
            emit(self._sink, Notice(NO_PEERS_NOTICE))
            return 0

        message = Chat(self.name, text)
        sent = 0
        for endpoint in targets:
            try:
                await self._send(message, endpoint)
                sent += 1
            except OSError as e:
                logger.debug(f"Chat to {endpoint} failed: {e}")
        return sent
