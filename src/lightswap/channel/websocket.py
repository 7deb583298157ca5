"""WebSocket event channel for swap status updates."""

import asyncio
import json
import logging
from collections import deque
from typing import Optional, Sequence

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from lightswap.channel.base import EventChannel, SwapUpdate, parse_message, subscribe_message
from lightswap.errors import TransportError

logger = logging.getLogger(__name__)


class WebSocketEventChannel(EventChannel):
    """
    Swap updates over the service's WebSocket.

    Usage:
        channel = WebSocketEventChannel("wss://api.boltz.exchange/v2/ws")
        await channel.open()
        await channel.subscribe([swap_id])
        update = await channel.receive()
    """

    def __init__(self, url: str, open_timeout: float = 30.0):
        self.url = url
        self.open_timeout = open_timeout
        self._ws = None
        self._pending: deque[SwapUpdate] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self._ws is not None:
            return
        try:
            self._ws = await websockets.connect(self.url, open_timeout=self.open_timeout)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.error(f"WebSocket connection to {self.url} failed: {e}")
            raise TransportError(f"Could not connect to {self.url}: {e}") from e
        logger.info(f"WebSocket connection opened: {self.url}")

    async def subscribe(self, swap_ids: Sequence[str]) -> None:
        if self._ws is None:
            raise TransportError("Channel is not open")
        try:
            await self._ws.send(json.dumps(subscribe_message(swap_ids)))
        except (ConnectionClosed, OSError) as e:
            raise TransportError(f"Subscribe failed: {e}") from e
        logger.debug(f"Subscribed to swap updates for {list(swap_ids)}")

    async def receive(self) -> Optional[SwapUpdate]:
        while not self._pending:
            if self._closed:
                return None
            if self._ws is None:
                raise TransportError("Channel is not open")
            try:
                raw = await self._ws.recv()
            except ConnectionClosed as e:
                if self._closed:
                    return None
                logger.warning(f"WebSocket closed unexpectedly: {e}")
                raise TransportError(f"Event channel closed: {e}") from e
            except OSError as e:
                raise TransportError(f"Event channel receive failed: {e}") from e

            self._pending.extend(parse_message(raw))
        return self._pending.popleft()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        if self._ws is not None:
            try:
                await self._ws.close()
            except (ConnectionClosed, OSError) as e:
                logger.debug(f"Ignoring error while closing WebSocket: {e}")
            self._ws = None
        logger.info("WebSocket connection closed")
