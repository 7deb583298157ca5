"""Push channel for swap status updates.

Wire protocol:
    client -> server  {"op": "subscribe", "channel": "swap.update", "args": [id, ...]}
    server -> client  {"event": "update", "channel": "swap.update",
                       "args": [{"id": "...", "status": "invoice.set"}, ...]}

Frames are parsed into SwapUpdate models here so that nothing loosely
typed reaches the swap state machine.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from lightswap.errors import ProtocolError

logger = logging.getLogger(__name__)

SWAP_UPDATE_CHANNEL = "swap.update"


class SwapUpdate(BaseModel):
    """One status update for one swap."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    failure_reason: Optional[str] = Field(None, alias="failureReason")
    zero_conf_rejected: Optional[bool] = Field(None, alias="zeroConfRejected")
    transaction: Optional[dict[str, Any]] = None


def subscribe_message(swap_ids: Sequence[str]) -> dict:
    return {"op": "subscribe", "channel": SWAP_UPDATE_CHANNEL, "args": list(swap_ids)}


def parse_message(raw: Union[str, bytes, dict]) -> list[SwapUpdate]:
    """Parse one channel frame.

    Returns the updates it carries; frames that are not updates (subscribe
    acks, pongs) carry none. Raises ProtocolError for malformed frames.
    """
    if isinstance(raw, (str, bytes)):
        try:
            msg = json.loads(raw)
        except ValueError as e:
            raise ProtocolError(f"Channel frame is not JSON: {e}") from e
    else:
        msg = raw

    if not isinstance(msg, dict):
        raise ProtocolError(f"Channel frame is not an object: {type(msg).__name__}")

    event = msg.get("event")
    if event == "error":
        raise ProtocolError(f"Channel reported an error: {msg.get('reason') or msg.get('error')}")
    if event != "update":
        logger.debug(f"Ignoring channel event {event!r}")
        return []

    args = msg.get("args")
    if not isinstance(args, list):
        raise ProtocolError("Update frame has no args list")

    try:
        return [SwapUpdate.model_validate(arg) for arg in args]
    except ValidationError as e:
        raise ProtocolError(f"Malformed swap update: {e}") from e


class EventChannel(ABC):
    """Abstract subscription channel delivering SwapUpdates in order."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once close() was called."""
        pass

    @abstractmethod
    async def open(self) -> None:
        """Connect. Raises TransportError on failure."""
        pass

    @abstractmethod
    async def subscribe(self, swap_ids: Sequence[str]) -> None:
        """Subscribe to updates for the given swap ids."""
        pass

    @abstractmethod
    async def receive(self) -> Optional[SwapUpdate]:
        """
        Wait for the next update.

        Returns:
            The next SwapUpdate, or None once the channel was closed locally

        Raises:
            TransportError: Connection failed or closed unexpectedly
            ProtocolError: A malformed frame was received (channel stays usable)
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        pass

    def __aiter__(self):
        return self

    async def __anext__(self) -> SwapUpdate:
        update = await self.receive()
        if update is None:
            raise StopAsyncIteration
        return update

    async def __aenter__(self) -> "EventChannel":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
