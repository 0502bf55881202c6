"""Commands sent from a Check Manager to its checkers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from ..channel import OneshotSender
from ..rpc.models import Block, BlockId, BlockResponse

P = TypeVar("P")


@dataclass(frozen=True)
class BlockMessage:
    """One block as seen by the NewProposal and MissedBlock checkers."""

    block_id: Optional[BlockId]
    block: Optional[Block]

    @classmethod
    def from_response(cls, response: BlockResponse) -> BlockMessage:
        return cls(block_id=response.block_id, block=response.block)


@dataclass(frozen=True)
class SlashesRange:
    starting_height: int
    ending_height: int


@dataclass(frozen=True)
class Check(Generic[P]):
    payload: P = None


@dataclass(frozen=True)
class Terminate:
    ack: OneshotSender
