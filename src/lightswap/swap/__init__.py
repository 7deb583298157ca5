"""Swap sessions and their lifecycle."""

from lightswap.swap.base import EVENT_TRANSITIONS, FAILURE_EVENTS, SwapRecord, SwapStatus
from lightswap.swap.manager import SwapManager
from lightswap.swap.session import SwapSession

__all__ = [
    "EVENT_TRANSITIONS",
    "FAILURE_EVENTS",
    "SwapRecord",
    "SwapStatus",
    "SwapManager",
    "SwapSession",
]
