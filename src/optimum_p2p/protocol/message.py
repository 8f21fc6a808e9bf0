"""Application-visible message types.

Both are immutable value types: they have no identity beyond their fields
and are safe to hand to callbacks running on other threads.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DomainMessage:
    """A message decoded from a MESSAGE envelope.

    Every field defaults to empty, which is also what a best-effort decode
    of a malformed envelope produces.
    """

    message_id: str = ""
    topic: str = ""
    payload: bytes = b""
    source_node_id: str = ""


@dataclass(frozen=True)
class ProxyMessage:
    """A message read from the proxy data-plane stream. Plain text by contract."""

    topic: str
    text: str
    message_id: str = ""
