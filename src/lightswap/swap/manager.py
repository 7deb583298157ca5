"""Keyed registry of swap sessions.

Sessions share no state; the manager only looks them up by swap id and
routes updates from a shared channel to the session that owns them.
"""

import asyncio
import logging
from typing import Callable, Optional

from lightswap.channel.base import EventChannel, SwapUpdate
from lightswap.client.base import SwapServiceClient
from lightswap.errors import ProtocolError, TransportError
from lightswap.fees.base import Direction
from lightswap.fees.calculator import QuoteCalculator
from lightswap.fees.engine import AmountLike
from lightswap.swap.base import SwapStatus
from lightswap.swap.session import SwapSession

logger = logging.getLogger(__name__)


class SwapManager:
    """Creates sessions and routes updates to them by swap id."""

    def __init__(self, client: SwapServiceClient, channel_factory: Callable[[], EventChannel]):
        self.client = client
        self.channel_factory = channel_factory
        self._sessions: dict[str, SwapSession] = {}

    async def load_calculator(self, direction: Direction = Direction.SUBMARINE) -> QuoteCalculator:
        """Fetch both fee schedules and return a calculator for them."""
        submarine, reverse = await asyncio.gather(
            self.client.get_fee_schedule(Direction.SUBMARINE),
            self.client.get_fee_schedule(Direction.REVERSE),
        )
        return QuoteCalculator(submarine, reverse, direction=direction)

    async def create_swap(
        self,
        invoice: str,
        amount: AmountLike = None,
        calculator: Optional[QuoteCalculator] = None,
    ) -> SwapSession:
        """Create and register a new submarine swap session."""
        session = SwapSession(self.client, self.channel_factory, invoice)
        await session.start(amount=amount, calculator=calculator)
        self._sessions[session.swap_id] = session
        return session

    def get(self, swap_id: str) -> Optional[SwapSession]:
        return self._sessions.get(swap_id)

    def discard(self, swap_id: str) -> None:
        """Forget a session (after it reached a terminal state)."""
        session = self._sessions.pop(swap_id, None)
        if session is not None and not session.is_terminal:
            logger.warning(f"Discarding swap {swap_id} while {session.status.value}")

    @property
    def active(self) -> list[SwapSession]:
        return [s for s in self._sessions.values() if not s.is_terminal]

    async def dispatch(self, update: SwapUpdate) -> bool:
        """Route one update to its session."""
        session = self._sessions.get(update.id)
        if session is None:
            logger.debug(f"No session for swap {update.id}; ignoring {update.status}")
            return False
        return await session.handle(update)

    async def listen(self, channel: EventChannel) -> None:
        """Consume a channel shared by several swaps until it closes.

        Each session still applies its own updates serially under its lock.
        """
        await channel.subscribe([s.swap_id for s in self.active])
        while self.active:
            try:
                update = await channel.receive()
            except ProtocolError as e:
                logger.warning(f"Dropped malformed event: {e}")
                continue
            except TransportError as e:
                logger.error(f"Shared event channel failed: {e}")
                for session in self.active:
                    await session.cancel(f"Event channel failed: {e}")
                raise
            if update is None:
                break
            await self.dispatch(update)

    async def run_all(self) -> dict[str, SwapStatus]:
        """Run every active session on its own channel until all are terminal."""
        sessions = self.active
        statuses = await asyncio.gather(*(s.run() for s in sessions))
        return {s.swap_id: status for s, status in zip(sessions, statuses)}

    async def close(self) -> None:
        for session in self.active:
            await session.cancel("Manager shut down")
        await self.client.close()
