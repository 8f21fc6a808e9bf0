"""Decode MESSAGE envelope payloads into :class:`DomainMessage` instances.

The node serializes messages as a JSON object::

    {"MessageID": "...", "Topic": "...", "SourceNodeID": "...", "Message": "..."}

``Message`` is either the base64 encoding of the original bytes or the
plain text itself; the envelope carries no flag saying which. The choice is
made by :func:`looks_like_base64` and :func:`decode_text`, which together
are a heuristic and can misclassify: any ASCII string made only of
alphanumerics whose length is a multiple of four (``"Test"``, ``"abcd1234"``)
qualifies as a candidate, and the decoded bytes are kept whenever they are
shorter than the input, which base64 decoding always is. Existing
deployments rely on this behaviour, so it is kept as is.
"""

from __future__ import annotations

import base64
import binascii
import logging
import string
from typing import Any, Optional

from .. import json
from . import fields
from .message import DomainMessage

logger = logging.getLogger(__name__)

_BASE64_CHARS = frozenset(string.ascii_letters + string.digits + "+/=")


def looks_like_base64(text: str) -> bool:
    """Return True if *text* is a candidate for base64 decoding.

    Every character must be an ASCII alphanumeric or one of ``+ / =``, and
    the string must contain ``=``, contain ``+`` or ``/``, or have a length
    that is a multiple of four.
    """

    if not text:
        return False

    if not _BASE64_CHARS.issuperset(text):
        return False

    return "=" in text or "+" in text or "/" in text or len(text) % 4 == 0


def _b64decode(text: str) -> bytes:
    """Lenient base64 decode: stops at the first ``=`` and tolerates
    missing padding. A trailing sextet that cannot complete a byte is dropped.
    """

    text = text.split("=", 1)[0]

    if len(text) % 4 == 1:
        text = text[:-1]

    text += "=" * (-len(text) % 4)

    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return b""


def decode_text(text: str) -> bytes:
    """Return the payload bytes for the ``Message`` string *text*."""

    raw = text.encode("utf-8", "surrogatepass")

    if not looks_like_base64(text):
        return raw

    decoded = _b64decode(text)

    # base64 always expands binary data; a shorter, non-empty decode is the
    # only evidence accepted that the original really was base64.
    if decoded and len(decoded) < len(text):
        return decoded

    return raw


def _string_field(document: dict, key: str) -> str:
    value = document.get(key)
    if isinstance(value, str):
        return value
    return ""


def decode(raw: Optional[bytes]) -> DomainMessage:
    """Decode the JSON payload of a MESSAGE envelope.

    Never raises: missing or mistyped keys yield empty fields, and anything
    that is not a JSON object yields an all-default :class:`DomainMessage`.
    """

    if not raw:
        return DomainMessage()

    try:
        document: Any = json.loads(bytes(raw))
    except json.DecodeError as e:
        logger.debug("undecodable message envelope (%d bytes): %s", len(raw), e)
        return DomainMessage()

    if not isinstance(document, dict):
        logger.debug("message envelope is not a JSON object: %s", type(document).__name__)
        return DomainMessage()

    message = document.get(fields.MESSAGE)
    if isinstance(message, str):
        payload = decode_text(message)
    else:
        payload = b""

    return DomainMessage(
        message_id=_string_field(document, fields.MESSAGE_ID),
        topic=_string_field(document, fields.TOPIC),
        payload=payload,
        source_node_id=_string_field(document, fields.SOURCE_NODE_ID),
    )
