from __future__ import annotations

import structlog

from ..channel import Receiver
from ..rpc.pool import GuardedClient
from .base import Checker, Command
from .messages import SlashesRange

logger = structlog.get_logger(__name__)


class SlashesChecker(Checker[SlashesRange]):
    """Alerts on slash events recorded for the validator within a height range."""

    name = "slashes"

    def __init__(self, validator_address: str, endpoint: str, client: GuardedClient, receiver: Receiver[Command]):
        super().__init__(endpoint, receiver)
        self.validator_address = validator_address
        self.client = client

    async def check(self, payload: SlashesRange) -> None:
        start, end = payload.starting_height, payload.ending_height
        async with self.client.acquire() as client:
            slash_events = await client.fetch_slashes(self.validator_address, start, end)

        if slash_events:
            logger.error(
                f"validator {self.validator_address} has slash event between {start} and {end}",
                validator=self.validator_address,
                starting_height=start,
                ending_height=end,
                slashes=len(slash_events),
            )
        else:
            logger.info(
                f"validator {self.validator_address} has no slash event between {start} and {end}",
                validator=self.validator_address,
                starting_height=start,
                ending_height=end,
            )
