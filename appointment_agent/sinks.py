"""Response sinks: where the agent delivers ``AgentResponse`` values.

Both sinks are written to from the agent's event loop only, and deliver in
the order ``send`` is called.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from appointment_agent.messages import AgentResponse

logger = logging.getLogger(__name__)


class QueueSink:
    """Buffers responses in an ``asyncio.Queue`` for a consumer to read."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[AgentResponse] = asyncio.Queue()

    def send(self, response: AgentResponse) -> None:
        self._queue.put_nowait(response)

    async def get(self) -> AgentResponse:
        """Wait for the next response."""
        return await self._queue.get()

    def drain(self) -> list[AgentResponse]:
        """Return every response received so far without waiting."""
        drained: list[AgentResponse] = []
        while not self._queue.empty():
            drained.append(self._queue.get_nowait())
        return drained

    def messages(self) -> list[str]:
        """Drain and return just the message texts."""
        return [r.message for r in self.drain()]


class CallbackSink:
    """Hands each response to a plain callable (e.g. ``print``)."""

    def __init__(self, callback: Callable[[AgentResponse], None]) -> None:
        self._callback = callback

    def send(self, response: AgentResponse) -> None:
        try:
            self._callback(response)
        except Exception:
            logger.exception("Response callback failed")
