"""gRPC bidirectional stream transport.

A :class:`Stream` owns one channel and one stream-stream call on it.
Outbound envelopes are placed on a queue that gRPC drains from its own
thread through :meth:`Stream._requests`; inbound envelopes are read by
iterating the call. Writes and reads are therefore independent and may be
issued concurrently, but only one thread should call :meth:`Stream.recv`.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple

import grpc

from ..base import (
    Transport,
    TransportClosedError,
    TransportConnectionError,
    TransportTimeout,
)

logger = logging.getLogger(__name__)

# Marks the end of the request stream on the outbound queue
_DONE = object()

# Message size limits are lifted entirely, as the node allows arbitrarily
# large payloads.
UNLIMITED = (
    ("grpc.max_send_message_length", -1),
    ("grpc.max_receive_message_length", -1),
)

# Initial flow-control windows for the high-throughput proxy stream (1 GiB)
LARGE_WINDOWS = (
    ("grpc.initial_receive_window_size", 1024 * 1024 * 1024),
    ("grpc.initial_connection_window_size", 1024 * 1024 * 1024),
)


class Stream(Transport):
    """One duplex stream to *address*, calling the gRPC *method* path."""

    def __init__(
        self,
        address: str,
        method: str,
        request_serializer: Callable[[Any], bytes],
        response_deserializer: Callable[[bytes], Any],
        options: Sequence[Tuple[str, Any]] = UNLIMITED,
        connect_timeout: Optional[float] = None,
    ):
        self.address = address
        self.method = method
        self.request_serializer = request_serializer
        self.response_deserializer = response_deserializer
        self.options = tuple(options)
        self.connect_timeout = connect_timeout

        self._channel: Optional[grpc.Channel] = None
        self._call = None
        self._outbox: "queue.SimpleQueue[Any]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._writes_done = False
        self._closed = False

    def __repr__(self) -> str:
        return f"Stream({self.address!r}, {self.method!r})"

    @property
    def is_open(self) -> bool:
        return self._call is not None and not self._closed

    def open(self) -> None:
        try:
            channel = grpc.insecure_channel(self.address, options=self.options)
        except (ValueError, TypeError) as e:
            self._closed = True
            raise TransportConnectionError(f"{self.address}: cannot create channel: {e}") from e

        try:
            grpc.channel_ready_future(channel).result(timeout=self.connect_timeout)
        except grpc.FutureTimeoutError as e:
            channel.close()
            self._closed = True
            raise TransportTimeout(
                f"{self.address}: channel not ready in {self.connect_timeout} sec"
            ) from e

        try:
            multicallable = channel.stream_stream(
                self.method,
                request_serializer=self.request_serializer,
                response_deserializer=self.response_deserializer,
            )
            call = multicallable(self._requests())
        except grpc.RpcError as e:
            self._outbox.put(_DONE)
            channel.close()
            self._closed = True
            raise TransportConnectionError(f"{self.address}: cannot open stream: {e}") from e

        self._channel = channel
        self._call = call
        logger.debug("%s: opened %s", self.address, self.method)

    def _requests(self) -> Iterator[Any]:
        while True:
            envelope = self._outbox.get()
            if envelope is _DONE:
                return
            yield envelope

    def send(self, envelope: Any) -> None:
        with self._lock:
            if self._writes_done or self._call is None:
                raise TransportClosedError(f"{self.address}: stream is closed for writing")
            if self._call.done():
                raise TransportClosedError(f"{self.address}: stream has ended")
            self._outbox.put(envelope)

    def recv(self) -> Any:
        if self._call is None:
            raise TransportClosedError(f"{self.address}: stream is not open")

        try:
            return next(self._call)
        except StopIteration:
            raise TransportClosedError(f"{self.address}: stream ended") from None
        except grpc.RpcError as e:
            raise TransportClosedError(f"{self.address}: stream failed: {e.code()}") from e

    def writes_done(self) -> None:
        with self._lock:
            if self._writes_done:
                return
            self._writes_done = True
            self._outbox.put(_DONE)

    def cancel(self) -> None:
        """Abort the call; a blocked :meth:`recv` raises promptly."""

        if self._call is not None:
            self._call.cancel()

    def finish(self) -> Optional[grpc.StatusCode]:
        """Return the final status code of a terminated call."""

        if self._call is None:
            return None
        return self._call.code()

    def close(self) -> None:
        self.writes_done()

        with self._lock:
            if self._closed:
                return
            self._closed = True

        if self._call is not None and not self._call.done():
            self._call.cancel()
        if self._channel is not None:
            self._channel.close()
