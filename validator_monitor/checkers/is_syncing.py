from __future__ import annotations

import structlog

from ..channel import Receiver
from ..rpc.pool import GuardedClient
from .base import Checker, Command

logger = structlog.get_logger(__name__)


class IsSyncingChecker(Checker[None]):
    """Alerts while the node reports that it is still catching up."""

    name = "is syncing"

    def __init__(self, endpoint: str, client: GuardedClient, receiver: Receiver[Command]):
        super().__init__(endpoint, receiver)
        self.client = client

    async def check(self, payload: None) -> None:
        async with self.client.acquire() as client:
            syncing = await client.fetch_syncing()

        if syncing:
            logger.error(f"the node: {self.endpoint} is syncing", endpoint=self.endpoint)
        else:
            logger.info(f"the node: {self.endpoint} is synced", endpoint=self.endpoint)
