"""Missed block detection over a sliding window of recent heights."""

from __future__ import annotations

import structlog

from ..account import AccountId
from ..channel import Receiver
from ..config import MissedBlockThreshold
from .base import Checker, Command
from .messages import BlockMessage

logger = structlog.get_logger(__name__)


class MissedBlockWindow:
    """Heights the validator failed to sign within the trailing ``denominator`` blocks.

    Feed heights in ascending order. ``observe`` prunes entries older than
    ``height - denominator + 1``, records ``height`` when it was missed and reports
    whether the window now holds at least ``numerator`` misses. Nothing is
    cleared by a later signed block; entries only leave by ageing out.
    """

    def __init__(self, threshold: MissedBlockThreshold):
        self.threshold = threshold
        self._heights: list[int] = []

    @property
    def heights(self) -> list[int]:
        return list(self._heights)

    def __len__(self) -> int:
        return len(self._heights)

    def observe(self, height: int, signed: bool) -> bool:
        lowest = height - self.threshold.denominator + 1
        self._heights = [h for h in self._heights if h >= lowest]

        if signed:
            return False
        self._heights.append(height)
        return len(self._heights) >= self.threshold.numerator


class MissedBlockChecker(Checker[BlockMessage]):
    name = "missed block"

    def __init__(
        self,
        validator_account: AccountId,
        missed_block_threshold: MissedBlockThreshold,
        endpoint: str,
        receiver: Receiver[Command],
    ):
        super().__init__(endpoint, receiver)
        self.validator_account = validator_account
        self.window = MissedBlockWindow(missed_block_threshold)

    async def check(self, payload: BlockMessage) -> None:
        block = payload.block
        if block is None or block.header is None or block.last_commit is None:
            logger.warning("block message carries no header or commit, skipping", endpoint=self.endpoint)
            return

        height = block.header.height
        signatures = block.last_commit.signatures
        logger.debug("commit signatures detected", height=height, count=len(signatures))
        signed = any(self.validator_account.matches(sig.validator_address) for sig in signatures)

        account = str(self.validator_account)
        alert = self.window.observe(height, signed)
        if signed:
            logger.info(f"{account} has signed for block {height}", validator=account, height=height)
        elif alert:
            logger.error(
                f"{account} has not signed for block {height}",
                validator=account,
                height=height,
                missed=len(self.window),
                threshold=str(self.window.threshold),
            )
        else:
            logger.warning(
                f"{account} has not signed for block {height} but under threshold",
                validator=account,
                height=height,
                missed=len(self.window),
                threshold=str(self.window.threshold),
            )
