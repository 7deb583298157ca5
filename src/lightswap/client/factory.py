"""Factory for the swap service client and its event channels.

Creates the real Boltz client unless dry-run mode is on, in which case the
in-memory service simulation is used for both requests and events.
"""

import logging
from typing import Callable, Optional

from lightswap.channel.base import EventChannel
from lightswap.client.base import SwapServiceClient
from lightswap.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_swap_client(settings: Optional[Settings] = None) -> SwapServiceClient:
    """Create the configured swap service client."""
    settings = settings or get_settings()

    if not settings.dry_run:
        from lightswap.client.boltz import BoltzClient
        logger.info(f"Using Boltz at {settings.boltz_api_url}")
        return BoltzClient(
            base_url=settings.boltz_api_url,
            pair_from=settings.pair_from,
            pair_to=settings.pair_to,
            timeout=settings.http_timeout,
        )

    from lightswap.client.dry_run import DryRunSwapClient
    logger.info("[DRY RUN] Using simulated swap service")
    return DryRunSwapClient()


def create_channel_factory(
    client: SwapServiceClient,
    settings: Optional[Settings] = None,
) -> Callable[[], EventChannel]:
    """Return a callable producing one event channel per swap session.

    The dry-run service feeds its own in-memory channels; everything else
    gets a WebSocket connection to the configured endpoint.
    """
    settings = settings or get_settings()

    from lightswap.client.dry_run import DryRunSwapClient
    if isinstance(client, DryRunSwapClient):
        return client.channel_factory

    from lightswap.channel.websocket import WebSocketEventChannel
    url = settings.websocket_url
    timeout = settings.http_timeout

    def factory() -> EventChannel:
        return WebSocketEventChannel(url, open_timeout=timeout)

    return factory
