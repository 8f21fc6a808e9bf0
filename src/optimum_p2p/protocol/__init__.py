from . import fields
from . import message
from . import codec
from . import trace
from . import wire

from .fields import Command, ResponseKind
from .message import DomainMessage, ProxyMessage
from .codec import decode
from .trace import Summarizer, HexPreview


"""
optimum_p2p Protocol Layer
==========================

This package defines what travels between a client and a node, and what
the application sees of it. It MUST NOT depend on the transport or session
layers.

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

User Code
    │
    ▼
Session / Orchestrator / Proxy (session.py, multi.py, proxy.py)
    - subscribe()
    - publish()
    - receive()
    - callbacks

    │
    ▼
Codec (codec.py, trace.py)
    Envelope payload -> DomainMessage
    - JSON decode, best effort, never raises
    - base64/text heuristic for the Message field
    Trace payload -> preview string

    │
    ▼
Message Model (message.py)
    Immutable application-facing values
    - DomainMessage
    - ProxyMessage

    │
    ▼
Wire Schema (wire.py)
    Protobuf envelopes for the node and proxy streams

    │
    ▼
Field Vocabulary (fields.py)
    Command / ResponseKind numbering, JSON keys, endpoint paths

---------------------------------------------------------------------

Below the Protocol Layer
------------------------

Transport Layer (optimum_p2p.transport)
    Moves envelopes over a duplex gRPC stream

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
