from __future__ import annotations

from typing import Any

import pytest
import structlog

from validator_monitor.errors import RpcError
from validator_monitor.rpc.models import (
    Block,
    BlockId,
    BlockResponse,
    Commit,
    CommitSig,
    Data,
    Header,
    TxResponse,
    Validator,
    ValidatorSlashEvent,
)

VALIDATOR_HEX = "0123456789ABCDEF0123456789ABCDEF01234567"
VALIDATOR_RAW = bytes.fromhex(VALIDATOR_HEX)
OTHER_RAW = bytes(20)
VALIDATOR_ADDRESS = "cosmosvaloper1test"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Any:
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


def make_block(height: int, signers: list[bytes] | None = None, txs: list[bytes] | None = None) -> Block:
    signers = [VALIDATOR_RAW] if signers is None else signers
    return Block(
        header=Header(chain_id="test-1", height=height),
        data=Data(txs=list(txs or [])),
        last_commit=Commit(height=height - 1, signatures=[CommitSig(validator_address=s) for s in signers]),
    )


def make_block_response(height: int, **kwargs: Any) -> BlockResponse:
    return BlockResponse(block_id=BlockId(hash=b"\x01" * 32), block=make_block(height, **kwargs))


class FakeNodeClient:
    """In-memory stand-in for ``NodeClient``."""

    def __init__(self, latest_height: int = 100, endpoint: str = "http://127.0.0.1:1317"):
        self.endpoint = endpoint
        self.latest_height = latest_height
        self.syncing = False
        self.validator: Validator | None = Validator(operator_address=VALIDATOR_ADDRESS, status=3)
        self.slashes: list[ValidatorSlashEvent] = []
        self.tx_responses: dict[str, TxResponse | None] = {}
        self.fail_heights: set[int] = set()
        self.fail_latest: Exception | None = None
        self.fail_syncing: Exception | None = None
        self.fail_tx: Exception | None = None

        self.fetched_heights: list[int] = []
        self.slash_queries: list[tuple[str, int, int]] = []
        self.tx_queries: list[str] = []
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    async def fetch_syncing(self) -> bool:
        if self.fail_syncing is not None:
            raise self.fail_syncing
        return self.syncing

    async def fetch_latest_block(self) -> BlockResponse:
        if self.fail_latest is not None:
            raise self.fail_latest
        return make_block_response(self.latest_height)

    async def fetch_block_by_height(self, height: int) -> BlockResponse:
        self.fetched_heights.append(height)
        if height in self.fail_heights:
            raise RpcError(f"block {height} unavailable", endpoint=self.endpoint, status_code=500)
        return make_block_response(height)

    async def fetch_tx_by_hash(self, tx_hash: str) -> TxResponse | None:
        self.tx_queries.append(tx_hash)
        if self.fail_tx is not None:
            raise self.fail_tx
        return self.tx_responses.get(tx_hash)

    async def fetch_validator(self, validator_address: str) -> Validator | None:
        return self.validator

    async def fetch_slashes(self, validator_address: str, starting_height: int, ending_height: int) -> list[ValidatorSlashEvent]:
        self.slash_queries.append((validator_address, starting_height, ending_height))
        return list(self.slashes)
