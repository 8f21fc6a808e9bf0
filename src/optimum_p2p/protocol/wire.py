"""Protobuf envelope schemas for the node and proxy streams.

The message classes are built at import time from descriptors rather than
from generated ``_pb2`` modules; the schemas are small and stable, and this
keeps protoc out of the build. They live in a private descriptor pool so
they cannot collide with generated modules a caller may also import.

Node stream, ``proto.CommandStream/ListenCommands``::

    message Request  { int32 command = 1; bytes data = 2; string topic = 3; }
    message Response { ResponseType command = 1; bytes data = 2; bytes metadata = 3; }

Proxy stream, ``proto.ProxyStream/ClientStream``::

    message ProxyMessage { string client_id = 1; bytes message = 2; string topic = 3;
                           string message_id = 4; string type = 5; }
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from .fields import Command, ResponseKind

_Field = descriptor_pb2.FieldDescriptorProto

_RESPONSE_TYPE_NAMES = {
    ResponseKind.UNSPECIFIED: "Unknown",
    ResponseKind.MESSAGE: "Message",
    ResponseKind.TRACE_MUMP2P: "MessageTraceMumP2P",
    ResponseKind.TRACE_GOSSIPSUB: "MessageTraceGossipSub",
}


def _field(message, name: str, number: int, kind: int, type_name: str = "") -> None:
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = kind
    field.label = _Field.LABEL_OPTIONAL
    if type_name:
        field.type_name = type_name


def _p2p_stream() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    proto.name = "p2p_stream.proto"
    proto.package = "proto"
    proto.syntax = "proto3"

    enum = proto.enum_type.add()
    enum.name = "ResponseType"
    for kind, name in _RESPONSE_TYPE_NAMES.items():
        value = enum.value.add()
        value.name = name
        value.number = int(kind)

    request = proto.message_type.add()
    request.name = "Request"
    _field(request, "command", 1, _Field.TYPE_INT32)
    _field(request, "data", 2, _Field.TYPE_BYTES)
    _field(request, "topic", 3, _Field.TYPE_STRING)

    response = proto.message_type.add()
    response.name = "Response"
    _field(response, "command", 1, _Field.TYPE_ENUM, ".proto.ResponseType")
    _field(response, "data", 2, _Field.TYPE_BYTES)
    _field(response, "metadata", 3, _Field.TYPE_BYTES)

    return proto


def _proxy_stream() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    proto.name = "proxy_stream.proto"
    proto.package = "proto"
    proto.syntax = "proto3"

    message = proto.message_type.add()
    message.name = "ProxyMessage"
    _field(message, "client_id", 1, _Field.TYPE_STRING)
    _field(message, "message", 2, _Field.TYPE_BYTES)
    _field(message, "topic", 3, _Field.TYPE_STRING)
    _field(message, "message_id", 4, _Field.TYPE_STRING)
    _field(message, "type", 5, _Field.TYPE_STRING)

    return proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_p2p_stream().SerializeToString())
_pool.AddSerializedFile(_proxy_stream().SerializeToString())

Request = message_factory.GetMessageClass(_pool.FindMessageTypeByName("proto.Request"))
Response = message_factory.GetMessageClass(_pool.FindMessageTypeByName("proto.Response"))
ProxyEnvelope = message_factory.GetMessageClass(_pool.FindMessageTypeByName("proto.ProxyMessage"))


def command(kind: Command, topic: str, data: bytes = b"") -> Request:
    """Build an outbound node envelope."""

    return Request(command=int(kind), topic=topic, data=bytes(data))


def response_kind(response: Response) -> ResponseKind:
    """Classify an inbound node envelope; unknown values map to UNSPECIFIED."""

    try:
        return ResponseKind(response.command)
    except ValueError:
        return ResponseKind.UNSPECIFIED
