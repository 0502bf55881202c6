"""Detects governance proposal submissions inside new blocks.

A block only carries raw transactions, so the proposal id is recovered by
looking the transaction up by hash and reading its execution logs: the log for
the submitting message holds a ``submit_proposal`` event with a
``proposal_id`` attribute.
"""

from __future__ import annotations

from typing import Optional

import structlog

from ..channel import Receiver
from ..errors import RpcError, TxDecodeError
from ..rpc.models import ABCIMessageLog
from ..rpc.pool import GuardedClient
from ..rpc.tx import calculate_hash, decode_tx, message_type_urls
from .base import Checker, Command
from .messages import BlockMessage

logger = structlog.get_logger(__name__)

SUBMIT_PROPOSAL_TYPE_URLS = frozenset({
    "/cosmos.gov.v1beta1.MsgSubmitProposal",
    "/cosmos.gov.v1.MsgSubmitProposal",
})
SUBMIT_PROPOSAL_EVENT = "submit_proposal"
PROPOSAL_ID_ATTRIBUTE = "proposal_id"


def find_proposal_id(message_logs: list[ABCIMessageLog], msg_index: int) -> Optional[str]:
    """Proposal id logged for the message at ``msg_index``, if any."""
    target_log = next((log for log in message_logs if log.msg_index == msg_index), None)
    if target_log is None:
        return None
    event = next((e for e in target_log.events if e.type == SUBMIT_PROPOSAL_EVENT), None)
    if event is None:
        return None
    attribute = next((a for a in event.attributes if a.key == PROPOSAL_ID_ATTRIBUTE), None)
    return attribute.value if attribute is not None else None


class ProposalCorrelator:
    """Cross-references block transactions with the node's indexed tx logs."""

    def __init__(self, client: GuardedClient, endpoint: str):
        self.client = client
        self.endpoint = endpoint

    async def correlate(self, txs: list[bytes]) -> list[str]:
        """Log and return the ids of proposals submitted by ``txs``."""
        proposal_ids: list[str] = []
        for tx_bytes in txs:
            proposal_ids.extend(await self._correlate_tx(tx_bytes))
        return proposal_ids

    async def _correlate_tx(self, tx_bytes: bytes) -> list[str]:
        tx_hash = calculate_hash(tx_bytes)
        try:
            tx = decode_tx(tx_bytes)
        except TxDecodeError as err:
            logger.warning(f"transaction bytes could not parsed...{err}", tx_hash=tx_hash)
            return []

        found: list[str] = []
        looked_up = False
        message_logs: list[ABCIMessageLog] | None = None
        for msg_index, type_url in enumerate(message_type_urls(tx)):
            if type_url not in SUBMIT_PROPOSAL_TYPE_URLS:
                continue

            # One lookup per transaction, whatever its outcome.
            if not looked_up:
                looked_up = True
                message_logs = await self._fetch_message_logs(tx_hash)
            if message_logs is None:
                continue

            proposal_id = find_proposal_id(message_logs, msg_index)
            if proposal_id is not None:
                logger.error(
                    f"new proposal has just submitted. id: {proposal_id}",
                    proposal_id=proposal_id,
                    tx_hash=tx_hash,
                    endpoint=self.endpoint,
                )
                found.append(proposal_id)
        return found

    async def _fetch_message_logs(self, tx_hash: str) -> list[ABCIMessageLog] | None:
        try:
            async with self.client.acquire() as client:
                tx_response = await client.fetch_tx_by_hash(tx_hash)
        except RpcError as err:
            logger.error(f"got error response while fetching tx detail: {err}", tx_hash=tx_hash)
            return None
        if tx_response is None:
            logger.warning(f"tx is none: {tx_hash}", tx_hash=tx_hash)
            return None
        return tx_response.logs


class NewProposalChecker(Checker[BlockMessage]):
    name = "new proposal"

    def __init__(self, endpoint: str, client: GuardedClient, receiver: Receiver[Command]):
        super().__init__(endpoint, receiver)
        self.correlator = ProposalCorrelator(client, endpoint)

    async def check(self, payload: BlockMessage) -> None:
        if payload.block is None:
            return
        await self.correlator.correlate(payload.block.txs)
