from __future__ import annotations

import structlog

from ..channel import Receiver
from ..rpc.models import BOND_STATUS_BONDED
from ..rpc.pool import GuardedClient
from .base import Checker, Command

logger = structlog.get_logger(__name__)


class ValidatorStatusChecker(Checker[None]):
    """Alerts when the validator is jailed or no longer bonded."""

    name = "validator status"

    def __init__(self, validator_address: str, endpoint: str, client: GuardedClient, receiver: Receiver[Command]):
        super().__init__(endpoint, receiver)
        self.validator_address = validator_address
        self.client = client

    async def check(self, payload: None) -> None:
        async with self.client.acquire() as client:
            validator = await client.fetch_validator(self.validator_address)

        if validator is None:
            logger.warning(
                f"validator response is none for {self.validator_address}",
                validator=self.validator_address,
                endpoint=self.endpoint,
            )
            return

        if validator.jailed or validator.status != BOND_STATUS_BONDED:
            logger.error(
                f"validator {self.validator_address} is not healthy...",
                validator=self.validator_address,
                jailed=validator.jailed,
                status=validator.status,
                endpoint=self.endpoint,
            )
        else:
            logger.info(f"validator {self.validator_address} is healthy.", validator=self.validator_address)
