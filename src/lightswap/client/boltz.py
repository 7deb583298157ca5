"""Boltz v2 REST client.

API docs: https://api.boltz.exchange/swagger
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from lightswap.client.base import ClaimDetailsResponse, CreatedSwap, SwapServiceClient
from lightswap.errors import ServiceError, TransportError
from lightswap.fees.base import Direction, SwapQuote
from lightswap.signing.base import ClaimPayload, ClaimTransactionDetails

logger = logging.getLogger(__name__)

BOLTZ_MAINNET = "https://api.boltz.exchange/v2"
BOLTZ_TESTNET = "https://api.testnet.boltz.exchange/v2"


class BoltzClient(SwapServiceClient):
    """Swap service client for the Boltz v2 API."""

    def __init__(
        self,
        base_url: str = BOLTZ_TESTNET,
        pair_from: str = "BTC",
        pair_to: str = "BTC",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Boltz client.

        Args:
            base_url: REST base URL including the /v2 prefix
            pair_from: Asset the user sends
            pair_to: Asset the user receives
            timeout: Request timeout in seconds
            http_client: Shared client (tests pass one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.pair_from = pair_from
        self.pair_to = pair_to
        self.timeout = timeout
        self._http = http_client
        self._owns_http = http_client is None

    @property
    def name(self) -> str:
        return "Boltz"

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._http

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"Boltz {method} {path}")
        try:
            response = await self._client().request(method, url, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Boltz {method} {path} failed: {e}")
            raise TransportError(f"Request to {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and "error" in data:
            logger.warning(f"Boltz {method} {path} rejected ({response.status_code}): {data['error']}")
            raise ServiceError(str(data["error"]), status_code=response.status_code)

        if response.status_code >= 400:
            logger.error(f"Boltz API error: {response.status_code} on {path}")
            raise TransportError(f"{path} returned HTTP {response.status_code}")

        if data is None:
            raise TransportError(f"{path} returned a non-JSON body")
        return data

    async def get_fee_schedule(self, direction: Direction) -> SwapQuote:
        data = await self._request("GET", f"/swap/{direction.value}")
        try:
            pair = data[self.pair_from][self.pair_to]
        except (KeyError, TypeError) as e:
            raise TransportError(
                f"No {self.pair_from}/{self.pair_to} pair in {direction.value} fee schedule"
            ) from e

        quote = SwapQuote.from_pair(direction, pair)
        logger.info(
            f"{direction.value} fees: {quote.fee_percent}% + {quote.network_fee} sats, "
            f"limits {quote.min_limit}-{quote.max_limit}"
        )
        return quote

    async def create_swap(self, invoice: str, refund_public_key: str) -> CreatedSwap:
        data = await self._request(
            "POST",
            "/swap/submarine",
            json={
                "invoice": invoice,
                "from": self.pair_from,
                "to": self.pair_to,
                "refundPublicKey": refund_public_key,
            },
        )
        try:
            swap = CreatedSwap.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"Unexpected swap creation response: {e}") from e
        logger.info(f"Created submarine swap {swap.id}")
        return swap

    async def get_claim_details(self, swap_id: str) -> ClaimTransactionDetails:
        data = await self._request("GET", f"/swap/submarine/{swap_id}/claim")
        try:
            return ClaimDetailsResponse.model_validate(data).to_details()
        except ValidationError as e:
            raise TransportError(f"Unexpected claim details response: {e}") from e

    async def submit_claim(self, swap_id: str, payload: ClaimPayload) -> dict:
        data = await self._request("POST", f"/swap/submarine/{swap_id}/claim", json=payload.to_dict())
        logger.info(f"Partial signature submitted for swap {swap_id}")
        return data if isinstance(data, dict) else {}

    async def get_swap_status(self, swap_id: str) -> Optional[str]:
        data = await self._request("GET", f"/swap/{swap_id}")
        return data.get("status") if isinstance(data, dict) else None

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
