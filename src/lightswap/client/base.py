"""Abstract swap service interface.

Request/response flow for a submarine swap:
1. get_fee_schedule: fees and limits per direction
2. create_swap: invoice + our refund key -> swap id, swap tree, claim key
3. (events arrive over the event channel)
4. get_claim_details: preimage, service nonce and claim sighash
5. submit_claim: our public nonce and partial signature
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lightswap.fees.base import Direction, SwapQuote
from lightswap.signing.base import ClaimPayload, ClaimTransactionDetails

logger = logging.getLogger(__name__)


class CreatedSwap(BaseModel):
    """Service response to a successful submarine swap creation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    swap_tree: dict[str, Any] = Field(..., alias="swapTree")
    claim_public_key: str = Field(..., alias="claimPublicKey")
    bip21: Optional[str] = None
    address: Optional[str] = None
    expected_amount: Optional[int] = Field(None, alias="expectedAmount")
    timeout_block_height: Optional[int] = Field(None, alias="timeoutBlockHeight")
    accept_zero_conf: Optional[bool] = Field(None, alias="acceptZeroConf")

    @property
    def claim_public_key_bytes(self) -> bytes:
        return bytes.fromhex(self.claim_public_key)


class ClaimDetailsResponse(BaseModel):
    """Service response carrying the data for a cooperative claim."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    preimage: str
    pub_nonce: str = Field(..., alias="pubNonce")
    transaction_hash: str = Field(..., alias="transactionHash")
    public_key: Optional[str] = Field(None, alias="publicKey")

    def to_details(self) -> ClaimTransactionDetails:
        return ClaimTransactionDetails.from_hex(
            preimage=self.preimage,
            pub_nonce=self.pub_nonce,
            transaction_hash=self.transaction_hash,
            public_key=self.public_key,
        )


class SwapServiceClient(ABC):
    """Abstract base class for swap service clients."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Client name identifier."""
        pass

    @abstractmethod
    async def get_fee_schedule(self, direction: Direction) -> SwapQuote:
        """
        Get fees and limits for one direction.

        Raises:
            TransportError: Service unreachable or answered with garbage
        """
        pass

    @abstractmethod
    async def create_swap(self, invoice: str, refund_public_key: str) -> CreatedSwap:
        """
        Create a submarine swap paying ``invoice``.

        Args:
            invoice: BOLT11 invoice the service should pay
            refund_public_key: Our compressed public key, hex

        Raises:
            ServiceError: The service rejected the swap
            TransportError: The request failed
        """
        pass

    @abstractmethod
    async def get_claim_details(self, swap_id: str) -> ClaimTransactionDetails:
        """Fetch preimage, service nonce and claim sighash."""
        pass

    @abstractmethod
    async def submit_claim(self, swap_id: str, payload: ClaimPayload) -> dict:
        """Send our public nonce and partial signature."""
        pass

    async def get_swap_status(self, swap_id: str) -> Optional[str]:
        """Current status string, for diagnostics only."""
        return None

    async def close(self) -> None:
        """Release network resources."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
