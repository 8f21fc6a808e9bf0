""" Python client for mump2p/optimum publish/subscribe nodes. A
    :class:`Session` holds one duplex command stream to one node; the
    :class:`MultiPublish` and :class:`MultiSubscribe` orchestrators fan
    operations out across many nodes; :class:`ProxyClient` talks to a node
    fronted by a proxy, with REST control-plane calls and a streaming data
    plane.
"""

# Utility components.

from . import json
from . import utils

# Submodules used by multiple other components.

from . import config
from . import protocol
from . import transport

# Primary public-facing interfaces.

from .protocol import Command, ResponseKind, DomainMessage, ProxyMessage
from .protocol.codec import decode
from .session import Session
from .multi import MultiPublish, MultiSubscribe, OutputSink
from .proxy import ProxyClient, generate_client_id

__version__ = '0.1.0'

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
