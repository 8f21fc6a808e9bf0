"""Transport layer implementations."""

import os

from .base import (
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    TransportClosedError,
)

_BACKEND = os.environ.get("OPTIMUM_P2P_TRANSPORT", "grpc")

if _BACKEND == "grpc":
    from .grpc import stream
else:
    raise ImportError(f"unknown OPTIMUM_P2P_TRANSPORT backend: {_BACKEND!r}")
