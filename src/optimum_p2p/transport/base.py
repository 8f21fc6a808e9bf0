"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`optimum_p2p.protocol` so the protocol remains
transport-agnostic. None of these exceptions cross a public
:class:`~optimum_p2p.Session` or :class:`~optimum_p2p.ProxyClient`
operation; they are converted to False/None there.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """The remote end did not become available in time."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class TransportClosedError(TransportError):
    """The stream has ended, or its write half has been closed."""


class Transport(ABC):
    """Minimal contract for a duplex envelope stream."""

    @abstractmethod
    def open(self) -> None:
        """Establish the underlying channel and stream."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying stream and channel. Idempotent."""

    @abstractmethod
    def send(self, envelope: Any) -> None:
        """Queue one outbound envelope."""

    @abstractmethod
    def recv(self) -> Any:
        """Block for the next inbound envelope.

        Raises :class:`TransportClosedError` once the stream has ended.
        """

    @abstractmethod
    def writes_done(self) -> None:
        """Signal that no further envelopes will be sent."""

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False
