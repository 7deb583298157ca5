"""Swap service clients."""

from lightswap.client.base import ClaimDetailsResponse, CreatedSwap, SwapServiceClient
from lightswap.client.boltz import BoltzClient
from lightswap.client.dry_run import DryRunSwapClient
from lightswap.client.factory import create_channel_factory, create_swap_client

__all__ = [
    "BoltzClient",
    "ClaimDetailsResponse",
    "CreatedSwap",
    "DryRunSwapClient",
    "SwapServiceClient",
    "create_channel_factory",
    "create_swap_client",
]
