"""Response models for the node's REST gateway.

Byte fields are base64 in the JSON encoding and are decoded to ``bytes`` here.
Unknown fields are ignored.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field

BOND_STATUS_UNSPECIFIED = 0
BOND_STATUS_UNBONDED = 1
BOND_STATUS_UNBONDING = 2
BOND_STATUS_BONDED = 3

BOND_STATUS_NAMES = {
    "BOND_STATUS_UNSPECIFIED": BOND_STATUS_UNSPECIFIED,
    "BOND_STATUS_UNBONDED": BOND_STATUS_UNBONDED,
    "BOND_STATUS_UNBONDING": BOND_STATUS_UNBONDING,
    "BOND_STATUS_BONDED": BOND_STATUS_BONDED,
}


def _decode_base64(value: Any) -> Any:
    if value is None:
        return b""
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid base64 value: {exc}") from exc
    return value


def _decode_bond_status(value: Any) -> Any:
    if isinstance(value, str) and value in BOND_STATUS_NAMES:
        return BOND_STATUS_NAMES[value]
    return value


Base64Bytes = Annotated[bytes, BeforeValidator(_decode_base64)]
BondStatus = Annotated[int, BeforeValidator(_decode_bond_status)]


class BlockId(BaseModel):
    hash: Base64Bytes = b""


class Header(BaseModel):
    chain_id: str = ""
    height: int
    time: str = ""
    proposer_address: Base64Bytes = b""


class CommitSig(BaseModel):
    block_id_flag: Union[int, str] = 0
    validator_address: Base64Bytes = b""
    timestamp: Optional[str] = None
    signature: Base64Bytes = b""


class Commit(BaseModel):
    height: int = 0
    round: int = 0
    signatures: list[CommitSig] = Field(default_factory=list)


class Data(BaseModel):
    txs: list[Base64Bytes] = Field(default_factory=list)


class Block(BaseModel):
    header: Optional[Header] = None
    data: Optional[Data] = None
    last_commit: Optional[Commit] = None

    @property
    def height(self) -> int | None:
        return self.header.height if self.header is not None else None

    @property
    def txs(self) -> list[bytes]:
        return list(self.data.txs) if self.data is not None else []


class BlockResponse(BaseModel):
    """Body of ``blocks/latest`` and ``blocks/{height}``."""
    block_id: Optional[BlockId] = None
    block: Optional[Block] = None


class Attribute(BaseModel):
    key: str
    value: str = ""


class StringEvent(BaseModel):
    type: str
    attributes: list[Attribute] = Field(default_factory=list)


class ABCIMessageLog(BaseModel):
    msg_index: int = 0
    log: str = ""
    events: list[StringEvent] = Field(default_factory=list)


class TxResponse(BaseModel):
    height: int = 0
    txhash: str = ""
    code: int = 0
    raw_log: str = ""
    logs: list[ABCIMessageLog] = Field(default_factory=list)


class Validator(BaseModel):
    operator_address: str = ""
    jailed: bool = False
    status: BondStatus = BOND_STATUS_UNSPECIFIED
    tokens: str = ""


class ValidatorSlashEvent(BaseModel):
    validator_period: int = 0
    fraction: str = ""
