"""Submarine swap session.

A session owns one swap: its key material, its event channel subscription
and its status. Status changes only in response to events, which are
applied one at a time under the session lock.
"""

import asyncio
import logging
from typing import Callable, Optional

from lightswap.channel.base import EventChannel, SwapUpdate
from lightswap.client.base import SwapServiceClient
from lightswap.errors import (
    CryptoValidationError,
    InputValidationError,
    ProtocolError,
    ServiceError,
    TransportError,
)
from lightswap.fees.base import Direction
from lightswap.fees.calculator import QuoteCalculator
from lightswap.fees.engine import AmountLike
from lightswap.signing.claim import ClaimSigner
from lightswap.signing.keys import SwapKeyMaterial
from lightswap.signing.preimage import payment_hash_from_invoice, validate_preimage
from lightswap.signing.taproot import SwapTree
from lightswap.swap.base import (
    ALLOWED_NEXT,
    EVENT_TRANSITIONS,
    FAILURE_EVENTS,
    SwapRecord,
    SwapStatus,
)

logger = logging.getLogger(__name__)

StatusListener = Callable[["SwapSession"], None]


class SwapSession:
    """State machine for one submarine swap.

    Usage:
        session = SwapSession(client, channel_factory, invoice)
        await session.start()
        await session.run()
    """

    def __init__(
        self,
        client: SwapServiceClient,
        channel_factory: Callable[[], EventChannel],
        invoice: str,
        direction: Direction = Direction.SUBMARINE,
    ):
        self.client = client
        self._channel_factory = channel_factory
        self.invoice = invoice.strip() if invoice else ""
        self.direction = direction
        self.record: Optional[SwapRecord] = None
        self.channel: Optional[EventChannel] = None
        self.status: Optional[SwapStatus] = None
        self.error: Optional[str] = None
        self.claim_submitted = False
        self._lock = asyncio.Lock()
        self._listeners: list[StatusListener] = []

    @property
    def swap_id(self) -> Optional[str]:
        return self.record.id if self.record else None

    @property
    def is_terminal(self) -> bool:
        return self.status is not None and self.status.is_terminal

    @property
    def payment_request(self) -> Optional[dict]:
        """Where and how much to pay on-chain, while the session waits for it."""
        if self.record is None or self.status is not SwapStatus.INVOICE_SET:
            return None
        return {
            "bip21": self.record.bip21,
            "address": self.record.address,
            "expected_amount": self.record.expected_amount,
        }

    def on_change(self, listener: StatusListener) -> None:
        """Register a callback invoked after every status change."""
        self._listeners.append(listener)

    async def start(
        self,
        amount: AmountLike = None,
        calculator: Optional[QuoteCalculator] = None,
    ) -> SwapRecord:
        """Create the swap with the service and subscribe to its updates.

        Args:
            amount: Send amount to check against the quote limits before creating
            calculator: Quote state holding the current limits

        Raises:
            InputValidationError: Bad invoice or amount; nothing was sent
            ServiceError: The service refused the swap; session is FAILED
            TransportError: Network or channel failure; session is FAILED
        """
        if self.status is not None:
            raise RuntimeError(f"Session already started (status {self.status.value})")
        if self.direction is not Direction.SUBMARINE:
            raise InputValidationError("Only submarine swaps can be created by a session")
        if not self.invoice:
            raise InputValidationError("An invoice is required")
        if calculator is not None and amount is not None:
            calculator.validate_send(amount)

        try:
            payment_hash = payment_hash_from_invoice(self.invoice)
        except CryptoValidationError as e:
            raise InputValidationError(f"Invalid invoice: {e}") from e

        keys = SwapKeyMaterial.generate()
        try:
            created = await self.client.create_swap(self.invoice, keys.public_key_hex)
            swap_tree = SwapTree.from_json(created.swap_tree)
            claim_public_key = bytes.fromhex(created.claim_public_key)
        except (ServiceError, TransportError, CryptoValidationError, ValueError) as e:
            keys.wipe()
            message = e.message if isinstance(e, ServiceError) else str(e)
            logger.error(f"Error creating swap: {message}")
            self._set_status(SwapStatus.FAILED, error=message)
            raise

        self.record = SwapRecord(
            id=created.id,
            direction=self.direction,
            invoice=self.invoice,
            payment_hash=payment_hash,
            keys=keys,
            swap_tree=swap_tree,
            claim_public_key=claim_public_key,
            bip21=created.bip21,
            address=created.address,
            expected_amount=created.expected_amount,
            timeout_block_height=created.timeout_block_height,
        )
        logger.info(f"Created swap {created.id}")
        self._set_status(SwapStatus.CREATED)

        try:
            self.channel = self._channel_factory()
            await self.channel.open()
            await self.channel.subscribe([created.id])
        except TransportError as e:
            await self._fail(f"Event channel failed: {e}")
            raise
        return self.record

    async def run(self) -> SwapStatus:
        """Drain the event channel until the session is terminal."""
        if self.channel is None or self.status is None:
            raise RuntimeError("Session has not been started")

        while not self.is_terminal:
            try:
                update = await self.channel.receive()
            except ProtocolError as e:
                logger.warning(f"Swap {self.swap_id}: dropped malformed event: {e}")
                continue
            except TransportError as e:
                async with self._lock:
                    await self._fail(f"Event channel failed: {e}")
                break

            if update is None:
                async with self._lock:
                    if not self.is_terminal:
                        await self._fail("Event channel closed unexpectedly")
                break

            await self.handle(update)

        return self.status

    async def handle(self, update: SwapUpdate) -> bool:
        """Apply one update. Returns True if the status changed."""
        async with self._lock:
            try:
                return await self._apply(update)
            except ProtocolError as e:
                logger.warning(f"Swap {self.swap_id}: {e}")
                return False

    async def cancel(self, reason: str = "Swap cancelled") -> None:
        """Stop following the swap. Waits for an in-flight claim to finish."""
        async with self._lock:
            if not self.is_terminal:
                await self._fail(reason)

    async def _apply(self, update: SwapUpdate) -> bool:
        if self.record is None or update.id != self.record.id:
            logger.debug(f"Ignoring update for foreign swap {update.id}")
            return False

        if self.is_terminal:
            logger.debug(f"Swap {update.id} already {self.status.value}; ignoring {update.status}")
            return False

        if update.status in FAILURE_EVENTS:
            reason = update.failure_reason or update.status
            await self._fail(f"Swap failed: {reason}")
            return True

        target = EVENT_TRANSITIONS.get(update.status)
        if target is None:
            raise ProtocolError(f"Unhandled status {update.status!r}")
        if target is self.status:
            logger.debug(f"Swap {update.id}: duplicate {update.status} ignored")
            return False
        if target not in ALLOWED_NEXT[self.status]:
            raise ProtocolError(
                f"Unexpected status {update.status!r} while {self.status.value}; ignored"
            )

        if target is SwapStatus.INVOICE_SET:
            logger.info(f"Swap {update.id}: waiting for on-chain transaction")
            self._set_status(target)
        elif target is SwapStatus.MEMPOOL_SEEN:
            logger.info(f"Swap {update.id}: lockup transaction is in the mempool")
            self._set_status(target)
        elif target is SwapStatus.CLAIM_PENDING:
            self._set_status(target)
            await self._cooperative_claim()
        elif target is SwapStatus.CLAIMED:
            logger.info(f"Swap {update.id} successful")
            self._set_status(target)
            await self._release()
        return True

    async def _cooperative_claim(self) -> None:
        try:
            await self._claim()
        except Exception as e:
            logger.exception(f"Swap {self.swap_id}: unexpected error during claim")
            if not self.is_terminal:
                await self._fail(f"Claim failed: {e}")
            raise

    async def _claim(self) -> None:
        record = self.record
        logger.info(f"Swap {record.id}: creating cooperative claim signature")
        try:
            details = await self.client.get_claim_details(record.id)
        except (ServiceError, TransportError, CryptoValidationError) as e:
            await self._fail(f"Could not fetch claim details: {e}")
            return

        if not validate_preimage(record.invoice, details.preimage):
            logger.error(f"Swap {record.id}: invalid preimage from service")
            await self._fail("Invalid preimage from service")
            return

        signer = ClaimSigner(record.keys)
        try:
            payload = await asyncio.to_thread(
                signer.sign,
                details,
                record.swap_tree,
                record.claim_public_key,
                record.payment_hash,
                record.timeout_block_height,
            )
        except CryptoValidationError as e:
            logger.error(f"Swap {record.id}: claim signing aborted: {e}")
            await self._fail(f"Claim signing failed: {e}")
            return

        try:
            await self.client.submit_claim(record.id, payload)
        except (ServiceError, TransportError) as e:
            await self._fail(f"Claim submission failed: {e}")
            return

        self.claim_submitted = True
        logger.info(f"Swap {record.id}: partial signature submitted")

    async def _fail(self, message: str) -> None:
        logger.error(f"Swap {self.swap_id or '(not created)'} failed: {message}")
        self._set_status(SwapStatus.FAILED, error=message)
        await self._release()

    async def _release(self) -> None:
        """Close the subscription and drop key material."""
        if self.channel is not None:
            try:
                await self.channel.close()
            except TransportError as e:
                logger.warning(f"Error closing event channel: {e}")
        if self.record is not None:
            self.record.keys.wipe()

    def _set_status(self, status: SwapStatus, error: Optional[str] = None) -> None:
        previous = self.status
        self.status = status
        if error is not None:
            self.error = error
        if self.record is not None:
            self.record.status = status
            self.record.history.append(status)
        logger.debug(
            f"Swap {self.swap_id}: {previous.value if previous else 'new'} -> {status.value}"
        )
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Status listener failed: {e}")
