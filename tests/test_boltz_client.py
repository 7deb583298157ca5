"""Tests for the Boltz REST client."""

import json

import httpx
import pytest

from lightswap.client.boltz import BoltzClient
from lightswap.errors import CryptoValidationError, ServiceError, TransportError
from lightswap.fees.base import Direction, MinerFees
from lightswap.signing.base import ClaimPayload
from lightswap.signing.keys import SwapKeyMaterial
from lightswap.signing.musig import nonce_gen

BASE_URL = "https://boltz.test/v2"

SUBMARINE_PAIRS = {
    "BTC": {
        "BTC": {
            "hash": "a1b2",
            "rate": 1,
            "limits": {"maximal": 25_000_000, "minimal": 1_000, "maximalZeroConf": 0},
            "fees": {"percentage": 0.1, "minerFees": 150},
        }
    }
}

REVERSE_PAIRS = {
    "BTC": {
        "BTC": {
            "hash": "c3d4",
            "rate": 1,
            "limits": {"maximal": 25_000_000, "minimal": 25_000},
            "fees": {"percentage": 0.25, "minerFees": {"lockup": 462, "claim": 333}},
        }
    }
}


def make_client(handler) -> BoltzClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BoltzClient(base_url=BASE_URL, http_client=http)


class TestFeeSchedule:
    """Tests for fee schedule requests."""

    @pytest.mark.asyncio
    async def test_submarine(self):
        """Test submarine pair parsing from the fee endpoint."""
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/v2/swap/submarine"
            return httpx.Response(200, json=SUBMARINE_PAIRS)

        quote = await make_client(handler).get_fee_schedule(Direction.SUBMARINE)

        assert str(quote.fee_percent) == "0.1"
        assert quote.network_fee == 150
        assert quote.min_limit == 1_000

    @pytest.mark.asyncio
    async def test_reverse(self):
        """Test reverse pair parsing with split miner fees."""
        def handler(request):
            assert request.url.path == "/v2/swap/reverse"
            return httpx.Response(200, json=REVERSE_PAIRS)

        quote = await make_client(handler).get_fee_schedule(Direction.REVERSE)

        assert quote.miner_fee == MinerFees(lockup=462, claim=333)
        assert quote.network_fee == 795

    @pytest.mark.asyncio
    async def test_missing_pair(self):
        """Test that a response without the BTC/BTC pair is rejected."""
        client = make_client(lambda request: httpx.Response(200, json={"L-BTC": {}}))

        with pytest.raises(TransportError):
            await client.get_fee_schedule(Direction.SUBMARINE)


class TestCreateSwap:
    """Tests for swap creation."""

    @pytest.mark.asyncio
    async def test_create(self):
        """Test swap creation request body and response parsing."""
        refund_key = SwapKeyMaterial.generate().public_key_hex
        sent = {}

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/v2/swap/submarine"
            sent.update(json.loads(request.content))
            return httpx.Response(
                201,
                json={
                    "id": "Xk2pQ9",
                    "bip21": "bitcoin:bc1p...?amount=0.001",
                    "address": "bc1p...",
                    "swapTree": {
                        "claimLeaf": {"version": 192, "output": "a914"},
                        "refundLeaf": {"version": 192, "output": "20ad"},
                    },
                    "claimPublicKey": "02" + "11" * 32,
                    "timeoutBlockHeight": 851_008,
                    "acceptZeroConf": False,
                    "expectedAmount": 100_150,
                },
            )

        swap = await make_client(handler).create_swap("lnbc1invoice", refund_key)

        assert sent == {"invoice": "lnbc1invoice", "from": "BTC", "to": "BTC", "refundPublicKey": refund_key}
        assert swap.id == "Xk2pQ9"
        assert swap.timeout_block_height == 851_008
        assert swap.expected_amount == 100_150
        assert swap.claim_public_key_bytes == bytes.fromhex("02" + "11" * 32)

    @pytest.mark.asyncio
    async def test_service_error(self):
        """Test that a 4xx error body becomes a ServiceError."""
        client = make_client(lambda request: httpx.Response(400, json={"error": "invoice has expired"}))

        with pytest.raises(ServiceError) as exc_info:
            await client.create_swap("lnbc1invoice", "02" + "11" * 32)

        assert exc_info.value.message == "invoice has expired"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_incomplete_response(self):
        """Test that a creation response missing fields is rejected."""
        client = make_client(lambda request: httpx.Response(201, json={"id": "Xk2pQ9"}))

        with pytest.raises(TransportError):
            await client.create_swap("lnbc1invoice", "02" + "11" * 32)

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test that a 5xx response is a transport failure."""
        client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(TransportError):
            await client.create_swap("lnbc1invoice", "02" + "11" * 32)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test that connection errors surface as TransportError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError):
            await make_client(handler).create_swap("lnbc1invoice", "02" + "11" * 32)


class TestClaim:
    """Tests for the cooperative claim endpoints."""

    @pytest.mark.asyncio
    async def test_get_claim_details(self):
        """Test claim details decoding."""
        keys = SwapKeyMaterial.generate()
        _, pub_nonce = nonce_gen(keys.secret, keys.public_key)

        def handler(request):
            assert request.url.path == "/v2/swap/submarine/Xk2pQ9/claim"
            return httpx.Response(
                200,
                json={
                    "preimage": "07" * 32,
                    "pubNonce": pub_nonce.hex(),
                    "transactionHash": "ab" * 32,
                    "publicKey": keys.public_key_hex,
                },
            )

        details = await make_client(handler).get_claim_details("Xk2pQ9")

        assert details.preimage == b"\x07" * 32
        assert details.pub_nonce == pub_nonce
        assert details.transaction_hash == b"\xab" * 32
        assert details.public_key == keys.public_key

    @pytest.mark.asyncio
    async def test_malformed_claim_details(self):
        """Test that a short public nonce is rejected."""
        client = make_client(
            lambda request: httpx.Response(
                200, json={"preimage": "07" * 32, "pubNonce": "02" * 10, "transactionHash": "ab" * 32}
            )
        )

        with pytest.raises(CryptoValidationError):
            await client.get_claim_details("Xk2pQ9")

    @pytest.mark.asyncio
    async def test_submit_claim(self):
        """Test the partial signature POST body."""
        posted = {}

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/v2/swap/submarine/Xk2pQ9/claim"
            posted.update(json.loads(request.content))
            return httpx.Response(200, json={})

        payload = ClaimPayload(pub_nonce=b"\x02" * 66, partial_signature=b"\x01" * 32)
        await make_client(handler).submit_claim("Xk2pQ9", payload)

        assert posted == {"pubNonce": "02" * 66, "partialSignature": "01" * 32}

    @pytest.mark.asyncio
    async def test_swap_status(self):
        """Test status lookup."""
        client = make_client(lambda request: httpx.Response(200, json={"status": "transaction.mempool"}))

        assert await client.get_swap_status("Xk2pQ9") == "transaction.mempool"


@pytest.mark.asyncio
async def test_close_keeps_shared_client_open():
    """Closing the client leaves an injected HTTP client open."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
    client = BoltzClient(base_url=BASE_URL, http_client=http)

    await client.close()

    assert not http.is_closed
    await http.aclose()
