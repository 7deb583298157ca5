"""Pytest configuration and fixtures."""

import hashlib
import os
import secrets
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "true"

from lightswap.client.dry_run import DryRunSwapClient
from lightswap.fees.base import Direction, MinerFees, SwapQuote


class InvoiceBook:
    """Stand-in for BOLT11 decoding.

    Issues opaque invoice strings and remembers the payment hash of each,
    the way a real invoice commits to sha256(preimage).
    """

    def __init__(self):
        self.hashes: dict[str, bytes] = {}

    def issue(self, preimage: Optional[bytes] = None) -> tuple[str, bytes]:
        preimage = preimage or secrets.token_bytes(32)
        payment_hash = hashlib.sha256(preimage).digest()
        invoice = f"lntb1000n1p{payment_hash.hex()}"
        self.hashes[invoice] = payment_hash
        return invoice, preimage

    def decode(self, invoice: str):
        if invoice not in self.hashes:
            raise ValueError("Bad bech32 checksum")
        return SimpleNamespace(payment_hash=self.hashes[invoice].hex())


@pytest.fixture
def invoices(monkeypatch) -> InvoiceBook:
    """Invoice book wired in place of the BOLT11 decoder."""
    book = InvoiceBook()
    monkeypatch.setattr("lightswap.signing.preimage.decode_bolt11", book.decode)
    return book


@pytest.fixture
def service(invoices) -> DryRunSwapClient:
    """Simulated swap service."""
    return DryRunSwapClient()


@pytest.fixture
def paid_invoice(invoices, service) -> str:
    """Invoice the simulated service is able to pay."""
    invoice, preimage = invoices.issue()
    service.register_preimage(preimage)
    return invoice


@pytest.fixture
def submarine_quote() -> SwapQuote:
    return SwapQuote(
        direction=Direction.SUBMARINE,
        fee_percent=Decimal("0.5"),
        miner_fee=150,
        min_limit=10_000,
        max_limit=1_000_000,
    )


@pytest.fixture
def reverse_quote() -> SwapQuote:
    return SwapQuote(
        direction=Direction.REVERSE,
        fee_percent=Decimal("0.25"),
        miner_fee=MinerFees(lockup=170, claim=130),
        min_limit=50_000,
        max_limit=5_000_000,
    )
