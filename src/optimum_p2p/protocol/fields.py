"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

from __future__ import annotations

import enum


class Command(enum.IntEnum):
    """Operation requested of the node; carried in every outbound envelope."""

    UNSPECIFIED = 0
    PUBLISH_DATA = 1
    SUBSCRIBE_TO_TOPIC = 2
    UNSUBSCRIBE_FROM_TOPIC = 3


class ResponseKind(enum.IntEnum):
    """Classification of an inbound envelope."""

    UNSPECIFIED = 0
    MESSAGE = 1
    TRACE_MUMP2P = 2
    TRACE_GOSSIPSUB = 3


TRACE_KINDS = frozenset((ResponseKind.TRACE_MUMP2P, ResponseKind.TRACE_GOSSIPSUB))

# Labels used in trace previews, "[<label> Trace] <hex>..."
TRACE_LABELS = {
    ResponseKind.TRACE_MUMP2P: "mump2p",
    ResponseKind.TRACE_GOSSIPSUB: "GossipSub",
}

# Keys of the JSON document carried by a MESSAGE envelope
MESSAGE_ID = "MessageID"
TOPIC = "Topic"
SOURCE_NODE_ID = "SourceNodeID"
MESSAGE = "Message"

# gRPC method paths
COMMAND_STREAM = "/proto.CommandStream/ListenCommands"
PROXY_STREAM = "/proto.ProxyStream/ClientStream"

# REST control-plane endpoints, relative to the proxy base URL
REST_SUBSCRIBE = "/api/v1/subscribe"
REST_PUBLISH = "/api/v1/publish"

# Number of leading bytes shown in a trace preview
TRACE_PREVIEW_BYTES = 64
