"""In-memory event channel for dry runs and tests."""

import asyncio
import logging
from collections import deque
from typing import Optional, Sequence, Union

from lightswap.channel.base import EventChannel, SwapUpdate, parse_message, subscribe_message
from lightswap.errors import TransportError

logger = logging.getLogger(__name__)

_CLOSED = object()


class QueueEventChannel(EventChannel):
    """Channel fed by push(); frames go through the same parser as the wire."""

    def __init__(self, fail_on_open: bool = False):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pending: deque[SwapUpdate] = deque()
        self._closed = False
        self._opened = False
        self.fail_on_open = fail_on_open
        self.sent: list[dict] = []
        self.subscriptions: set[str] = set()
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self.fail_on_open:
            raise TransportError("Simulated connection failure")
        self._opened = True

    async def subscribe(self, swap_ids: Sequence[str]) -> None:
        if not self._opened:
            raise TransportError("Channel is not open")
        self.sent.append(subscribe_message(swap_ids))
        self.subscriptions.update(swap_ids)

    def push(self, frame: Union[str, bytes, dict]) -> None:
        """Queue a raw frame."""
        self._queue.put_nowait(frame)

    def push_update(self, swap_id: str, status: str, **extra) -> None:
        """Queue an update frame for one swap."""
        self.push({"event": "update", "channel": "swap.update", "args": [{"id": swap_id, "status": status, **extra}]})

    def fail(self, error: Optional[Exception] = None) -> None:
        """Make the next receive() fail like a dropped connection."""
        self._queue.put_nowait(error or TransportError("Simulated connection drop"))

    async def receive(self) -> Optional[SwapUpdate]:
        while not self._pending:
            if self._closed:
                return None
            item = await self._queue.get()
            if item is _CLOSED:
                return None
            if isinstance(item, Exception):
                raise item
            self._pending.extend(parse_message(item))
        return self._pending.popleft()

    async def close(self) -> None:
        self.close_calls += 1
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        self._queue.put_nowait(_CLOSED)
        logger.debug("Queue channel closed")
