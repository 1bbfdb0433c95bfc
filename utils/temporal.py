import asyncio
import logging
from typing import Optional

from temporalio.client import Client

from utils.config import Settings

logger = logging.getLogger(__name__)


async def get_temporal_client(settings: Settings) -> Client:
    """
    Connect to the Temporal server described by the settings.
    """
    return await Client.connect(settings.temporal_address, namespace=settings.temporal_namespace)


class TemporalConnection:
    """Holds the API's Temporal client; stays empty when the server is unreachable."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: Optional[Client] = None

    @property
    def client(self) -> Optional[Client]:
        return self._client

    async def connect(self, max_retries: int = 3, retry_delay: float = 1.0) -> Optional[Client]:
        address = self._settings.temporal_address
        namespace = self._settings.temporal_namespace
        for attempt in range(max_retries):
            try:
                self._client = await get_temporal_client(self._settings)
                logger.info(f"Connected to Temporal server at {address} in namespace '{namespace}'")
                return self._client
            except Exception as e:
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay)
                    continue
                logger.error(f"Failed to connect to Temporal at {address}: {e}; order confirmations are disabled")
        return None
