"""Trace-event handling.

The node emits diagnostic trace envelopes (mump2p and GossipSub) whose
payloads are protobuf-encoded trace records. This package does not decode
them; a :class:`Summarizer` turns the raw bytes into a human-readable string
for the session's trace callback. :class:`HexPreview` is the default, and
a real decoder can be plugged in per :class:`~.fields.ResponseKind`
without changing the session.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from ..utils import head_hex
from . import fields
from .fields import ResponseKind


class Summarizer(ABC):
    """Turn a trace envelope payload into a string."""

    @abstractmethod
    def summarize(self, raw: bytes) -> str:
        """Return a human-readable rendition of *raw*."""


class HexPreview(Summarizer):
    """``"[<label> Trace] <hex of the first bytes>..."``"""

    def __init__(self, label: str, length: int = fields.TRACE_PREVIEW_BYTES):
        self.label = label
        self.length = length

    def summarize(self, raw: bytes) -> str:
        return f"[{self.label} Trace] {head_hex(raw, self.length)}..."

    def __repr__(self) -> str:
        return f"HexPreview({self.label!r}, {self.length})"


def default_summarizers() -> Dict[ResponseKind, Summarizer]:
    return {kind: HexPreview(label) for kind, label in fields.TRACE_LABELS.items()}


def summarizers(overrides: Optional[Mapping[ResponseKind, Summarizer]] = None) -> Dict[ResponseKind, Summarizer]:
    """Return the default summarizers with *overrides* applied on top."""

    result = default_summarizers()
    if overrides:
        for kind, summarizer in overrides.items():
            result[ResponseKind(kind)] = summarizer
    return result
