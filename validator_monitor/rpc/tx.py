"""Transaction envelope decoding and hashing.

Only the part of ``cosmos.tx.v1beta1.Tx`` needed to read message type URLs is
described. Blocks carry ``TxRaw`` bytes, which share ``Tx``'s wire layout, so
the body decodes as an embedded ``TxBody``. Fields not described here are kept
as unknown fields.
"""

from __future__ import annotations

import hashlib

from google.protobuf import any_pb2, descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from ..errors import TxDecodeError

_Field = descriptor_pb2.FieldDescriptorProto


def _tx_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="cosmos/tx/v1beta1/tx.proto",
        package="cosmos.tx.v1beta1",
        syntax="proto3",
        dependency=["google/protobuf/any.proto"],
    )

    body = file_proto.message_type.add(name="TxBody")
    body.field.add(
        name="messages", number=1, label=_Field.LABEL_REPEATED,
        type=_Field.TYPE_MESSAGE, type_name=".google.protobuf.Any",
    )
    body.field.add(name="memo", number=2, label=_Field.LABEL_OPTIONAL, type=_Field.TYPE_STRING)
    body.field.add(name="timeout_height", number=3, label=_Field.LABEL_OPTIONAL, type=_Field.TYPE_UINT64)

    tx = file_proto.message_type.add(name="Tx")
    tx.field.add(
        name="body", number=1, label=_Field.LABEL_OPTIONAL,
        type=_Field.TYPE_MESSAGE, type_name=".cosmos.tx.v1beta1.TxBody",
    )
    # AuthInfo is not inspected; keep it opaque.
    tx.field.add(name="auth_info", number=2, label=_Field.LABEL_OPTIONAL, type=_Field.TYPE_BYTES)
    tx.field.add(name="signatures", number=3, label=_Field.LABEL_REPEATED, type=_Field.TYPE_BYTES)
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(any_pb2.DESCRIPTOR.serialized_pb)
_POOL.AddSerializedFile(_tx_file_descriptor().SerializeToString())

Tx = message_factory.GetMessageClass(_POOL.FindMessageTypeByName("cosmos.tx.v1beta1.Tx"))


def calculate_hash(tx_bytes: bytes) -> str:
    """SHA-256 of the raw transaction as uppercase hex, the node's lookup key."""
    return hashlib.sha256(tx_bytes).hexdigest().upper()


def decode_tx(tx_bytes: bytes):
    """Decode raw transaction bytes into a ``Tx`` message."""
    try:
        return Tx.FromString(bytes(tx_bytes))
    except DecodeError as exc:
        raise TxDecodeError(f"transaction bytes could not be parsed: {exc}") from exc


def message_type_urls(tx) -> list[str]:
    if not tx.HasField("body"):
        return []
    return [message.type_url for message in tx.body.messages]
