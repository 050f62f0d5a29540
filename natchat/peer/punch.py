"""
UDP hole punching.

For every newly learned candidate endpoint the peer fires a short burst of
probes so both NATs open a binding, then keeps the binding warm with a slow
keepalive for as long as the peer runs:

    PUNCH hello 0 ... PUNCH hello 7   (120 ms apart)
    PUNCH keepalive                   (every 15 s, forever)

One task per endpoint. Starting an endpoint that is already being punched
is a no-op; each task can be cancelled by endpoint.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from ..config import PunchConfig
from ..network.endpoint import Endpoint
from ..network.protocol import Punch, Message

logger = logging.getLogger(__name__)

SendFunc = Callable[[Message, Endpoint], Awaitable[None]]


class HolePuncher:
    """Schedules punch bursts and keepalives, one task per endpoint."""

    def __init__(self, send: SendFunc, config: Optional[PunchConfig] = None):
        """
        Initialize the scheduler.

        Args:
            send: Coroutine function sending one message to one endpoint
            config: Burst/keepalive timing (defaults: 8 x 120 ms, 15 s)
        """
        self._send = send
        self.config = config or PunchConfig()
        self._tasks: Dict[str, asyncio.Task] = {}

    def start(self, endpoint: Endpoint) -> bool:
        """
        Start punching toward an endpoint.

        Returns:
            False if a task for this endpoint is already running
        """
        existing = self._tasks.get(endpoint.key)
        if existing is not None and not existing.done():
            return False

        logger.info(f"Punching hole to {endpoint}")
        task = asyncio.create_task(self._run(endpoint))
        self._tasks[endpoint.key] = task
        return True

    def cancel(self, endpoint: Endpoint) -> bool:
        """Stop punching toward an endpoint. Returns False if it was not tracked."""
        task = self._tasks.pop(endpoint.key, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def stop(self) -> None:
        """Cancel every punch task and wait for them to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def is_punching(self, endpoint: Endpoint) -> bool:
        task = self._tasks.get(endpoint.key)
        return task is not None and not task.done()

    @property
    def active(self) -> List[str]:
        """Canonical strings of endpoints with a live task, sorted."""
        return sorted(key for key, task in self._tasks.items() if not task.done())

    async def _run(self, endpoint: Endpoint) -> None:
        await self.burst(endpoint)
        await self.keepalive(endpoint)

    async def burst(self, endpoint: Endpoint) -> None:
        """Send the numbered hello probes."""
        for seq in range(self.config.burst_count):
            await self._probe(Punch.hello(seq), endpoint)
            await asyncio.sleep(self.config.burst_interval)

    async def keepalive(self, endpoint: Endpoint) -> None:
        """Send a keepalive probe on a fixed interval until cancelled."""
        while True:
            await asyncio.sleep(self.config.keepalive_interval)
            await self._probe(Punch.keepalive(), endpoint)

    async def _probe(self, message: Punch, endpoint: Endpoint) -> None:
        try:
            await self._send(message, endpoint)
        except OSError as e:
            logger.debug(f"Punch to {endpoint} failed: {e}")
