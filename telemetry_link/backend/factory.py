"""Data service factory."""

from __future__ import annotations

import aiohttp

from ..config import TelemetryConfig
from .base import DataServiceProto


def create_data_service(
    config: TelemetryConfig, *, session: aiohttp.ClientSession | None = None
) -> DataServiceProto:
    """Create the data service selected by ``config``."""

    if config.use_mock:
        from .mock import MockDataService

        return MockDataService()
    from .ws_client import TelemetryWSClient

    return TelemetryWSClient(
        config.ws_url,
        session=session,
        normalize=config.ws_normalize,
        debug=config.debug_ws,
    )
