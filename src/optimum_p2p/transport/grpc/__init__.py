"""gRPC duplex-stream transport."""

from . import stream
