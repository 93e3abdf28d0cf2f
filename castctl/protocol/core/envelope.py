# castctl/protocol/core/envelope.py
"""
Outbound envelope encoding via the protobuf runtime.

The CastMessage schema is small and fixed, so it is declared here as a
FileDescriptorProto instead of shipping generated *_pb2 code.
"""
from __future__ import annotations

from typing import Optional

from google.protobuf import descriptor_pb2, descriptor_pool, message, message_factory

from castctl.protocol.errors import EncodeError
from .defs import (
    FRAME_HEADER_SIZE,
    TAG_DESTINATION_ID,
    TAG_NAMESPACE,
    TAG_PAYLOAD_BINARY,
    TAG_PAYLOAD_TYPE,
    TAG_PAYLOAD_UTF8,
    TAG_PROTOCOL_VERSION,
    TAG_SOURCE_ID,
)

_PACKAGE = "castctl.cast_channel"
_FIELD = descriptor_pb2.FieldDescriptorProto


def _build_schema() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="castctl/cast_channel.proto",
        package=_PACKAGE,
        syntax="proto2",
    )
    msg = fdp.message_type.add(name="CastMessage")

    version = msg.enum_type.add(name="ProtocolVersion")
    version.value.add(name="CASTV2_1_0", number=0)

    ptype = msg.enum_type.add(name="PayloadType")
    ptype.value.add(name="STRING", number=0)
    ptype.value.add(name="BINARY", number=1)

    def add(name: str, number: int, ftype: int, *, optional: bool = False, type_name: str = "") -> None:
        f = msg.field.add(
            name=name,
            number=number,
            type=ftype,
            label=_FIELD.LABEL_OPTIONAL if optional else _FIELD.LABEL_REQUIRED,
        )
        if type_name:
            f.type_name = type_name

    add("protocol_version", TAG_PROTOCOL_VERSION, _FIELD.TYPE_ENUM, type_name=f".{_PACKAGE}.CastMessage.ProtocolVersion")
    add("source_id", TAG_SOURCE_ID, _FIELD.TYPE_STRING)
    add("destination_id", TAG_DESTINATION_ID, _FIELD.TYPE_STRING)
    add("namespace", TAG_NAMESPACE, _FIELD.TYPE_STRING)
    add("payload_type", TAG_PAYLOAD_TYPE, _FIELD.TYPE_ENUM, type_name=f".{_PACKAGE}.CastMessage.PayloadType")
    add("payload_utf8", TAG_PAYLOAD_UTF8, _FIELD.TYPE_STRING, optional=True)
    add("payload_binary", TAG_PAYLOAD_BINARY, _FIELD.TYPE_BYTES, optional=True)
    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_schema().SerializeToString())

CastMessage = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.CastMessage"))

PAYLOAD_STRING = 0


def encode_envelope(
    source_id: str,
    destination_id: str,
    namespace: str,
    payload: str,
    *,
    max_size: Optional[int] = None,
) -> bytes:
    """
    Serialize one string-payload CastMessage (without the length prefix).

    Raises EncodeError if protobuf rejects the fields or the result would
    not fit into `max_size` bytes once the length prefix is added.
    """
    try:
        msg = CastMessage(
            protocol_version=0,
            source_id=source_id,
            destination_id=destination_id,
            namespace=namespace,
            payload_type=PAYLOAD_STRING,
            payload_utf8=payload,
        )
        raw = msg.SerializeToString()
    except (message.EncodeError, TypeError, ValueError) as e:
        raise EncodeError(f"envelope rejected: {e}") from None

    if max_size is not None and len(raw) + FRAME_HEADER_SIZE > max_size:
        raise EncodeError(f"envelope of {len(raw)} bytes exceeds buffer of {max_size} bytes")
    return raw


def frame(envelope: bytes) -> bytes:
    """Prefix an encoded envelope with its uint32 big-endian length."""
    return len(envelope).to_bytes(FRAME_HEADER_SIZE, "big") + envelope
