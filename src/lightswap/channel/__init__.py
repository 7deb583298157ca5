"""Swap status event channels."""

from lightswap.channel.base import (
    SWAP_UPDATE_CHANNEL,
    EventChannel,
    SwapUpdate,
    parse_message,
    subscribe_message,
)
from lightswap.channel.memory import QueueEventChannel
from lightswap.channel.websocket import WebSocketEventChannel

__all__ = [
    "SWAP_UPDATE_CHANNEL",
    "EventChannel",
    "SwapUpdate",
    "parse_message",
    "subscribe_message",
    "QueueEventChannel",
    "WebSocketEventChannel",
]
