"""Node RPC access: response models, HTTP client and the shared client pool."""

from .client import NodeClient
from .models import (
    BOND_STATUS_BONDED,
    Block,
    BlockResponse,
    TxResponse,
    Validator,
    ValidatorSlashEvent,
)
from .pool import ClientPool, GuardedClient
from .tx import calculate_hash, decode_tx

__all__ = [
    "BOND_STATUS_BONDED",
    "Block",
    "BlockResponse",
    "ClientPool",
    "GuardedClient",
    "NodeClient",
    "TxResponse",
    "Validator",
    "ValidatorSlashEvent",
    "calculate_hash",
    "decode_tx",
]
