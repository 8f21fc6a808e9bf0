""" The :class:`Session` manages one long-lived duplex stream to one node:
    outbound publish/subscribe commands, and a background thread that reads
    every inbound envelope and dispatches it to the registered callbacks.
"""

import logging
import queue
import threading
import weakref

from . import config
from . import protocol
from . import transport

from .protocol import fields
from .protocol import wire
from .protocol.fields import Command, ResponseKind

logger = logging.getLogger(__name__)


class Session:
    """ Open a command stream to the node at *address* (``host:port``).
        Construction never raises for connection problems: if the channel
        cannot be made ready within *connect_timeout* seconds, or the stream
        cannot be established, the session is closed from the outset and
        :attr:`ready` is False. Check :attr:`ready` before relying on the
        session; every operation on a closed session simply fails.

        Inbound messages are delivered to the callback registered with
        :func:`set_message_callback`, in arrival order, from a dedicated
        background thread. Trace envelopes are summarized by the entry in
        *summarizers* for their :class:`~optimum_p2p.protocol.ResponseKind`
        (hex previews by default) and delivered to the callback registered
        with :func:`set_trace_callback`.

        A :class:`Session` is a context manager; leaving the context, or
        discarding the last reference to the session, invokes
        :func:`shutdown`.
    """

    def __init__(self, address, connect_timeout=None, close_timeout=None, summarizers=None):

        if connect_timeout is None:
            connect_timeout = config.connect_timeout()
        if close_timeout is None:
            close_timeout = config.close_timeout()

        self.address = address
        self.close_timeout = close_timeout
        self.summarizers = protocol.trace.summarizers(summarizers)

        self._closed = False
        self._ready = False
        self._remote_closed = False
        self._state_lock = threading.Lock()

        self._message_callback = None
        self._trace_callback = None

        self._waiters = list()
        self._waiters_lock = threading.Lock()

        self.thread = None
        self.transport = transport.stream.Stream(address, fields.COMMAND_STREAM,
                request_serializer=wire.Request.SerializeToString,
                response_deserializer=wire.Response.FromString,
                connect_timeout=connect_timeout)

        try:
            self.transport.open()
        except transport.TransportError as e:
            logger.warning("%s: session not established: %s", address, e)
            self._closed = True
            return

        self._ready = True

        # The background thread only holds a weak reference to this
        # session, so that an abandoned session is still collected and
        # shut down by __del__.

        reference = weakref.ref(self)
        self.thread = threading.Thread(target=_receive, args=(reference, self.transport))
        self.thread.name = 'optimum_p2p.Session:' + str(address)
        self.thread.daemon = True
        self.thread.start()


    def __enter__(self):
        return self


    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()


    def __del__(self):

        try:
            self.shutdown()
        except AttributeError:
            # __init__ did not get far enough to have anything to release.
            pass


    def __repr__(self):

        if self._ready:
            state = 'ready'
        else:
            state = 'closed'

        return 'Session(%r, %s)' % (self.address, state)


    @property
    def ready(self):
        """ True while the session can be used for writes and reads.
        """

        return self._ready


    def set_message_callback(self, callback):
        """ Register *callback* to be invoked with each inbound
            :class:`~optimum_p2p.protocol.DomainMessage`. Only one callback
            is active at a time; the most recently set one receives every
            subsequent delivery. Pass None to stop delivery.
        """

        self._message_callback = callback


    def set_trace_callback(self, callback):
        """ Register *callback* to be invoked with the summary string of
            each inbound trace envelope. Pass None to stop delivery.
        """

        self._trace_callback = callback


    def subscribe(self, topic):
        """ Ask the node to deliver messages for *topic* on this stream.
            Returns True if the request was written; no acknowledgement
            is expected.
        """

        return self._write(Command.SUBSCRIBE_TO_TOPIC, topic)


    def unsubscribe(self, topic):
        return self._write(Command.UNSUBSCRIBE_FROM_TOPIC, topic)


    def publish(self, topic, data):
        """ Publish the bytes *data* on *topic*. Returns True if the request
            was written.
        """

        if isinstance(data, str):
            raise TypeError('publish() requires bytes, not str')

        return self._write(Command.PUBLISH_DATA, topic, bytes(data))


    def receive(self, timeout=None):
        """ Wait up to *timeout* seconds (forever if None) for the next
            envelope read by the background thread. Return the decoded
            :class:`~optimum_p2p.protocol.DomainMessage` if it was a message;
            return None on timeout, on stream closure, or if the envelope was
            a trace event. A message returned here is also delivered to the
            message callback, if any.

            Called from a callback, that is from the background thread
            itself, there is nobody to wait for: None is returned at once.
        """

        if self._ready == False:
            return None

        if threading.current_thread() is self.thread:
            return None

        mailbox = queue.SimpleQueue()

        with self._waiters_lock:
            if self._remote_closed:
                return None
            self._waiters.append(mailbox)

        try:
            return mailbox.get(timeout=timeout)
        except queue.Empty:
            with self._waiters_lock:
                try:
                    self._waiters.remove(mailbox)
                except ValueError:
                    pass
            return None


    def shutdown(self):
        """ Close the session: no further writes are accepted, the request
            stream is half-closed, the background thread is joined, and the
            channel is released. Safe to call any number of times, from any
            thread, including from within a callback.
        """

        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._ready = False

        stream = self.transport
        stream.writes_done()

        thread = self.thread
        if thread is not None and thread is not threading.current_thread():

            # Give the node a chance to end the stream on its own after the
            # half-close; cancel the call if it does not, which is what
            # guarantees the join below returns.

            thread.join(self.close_timeout)
            if thread.is_alive():
                stream.cancel()
                thread.join()
        else:
            stream.cancel()

        try:
            status = stream.finish()
        except Exception:
            logger.debug("%s: no final status", self.address, exc_info=True)
        else:
            logger.debug("%s: stream finished: %s", self.address, status)

        stream.close()
        self._wake_waiters(None)


    def _write(self, command, topic, data=b''):

        if self._ready == False:
            return False

        envelope = wire.command(command, topic, data)

        try:
            self.transport.send(envelope)
        except transport.TransportError as e:
            logger.debug("%s: %s not written: %s", self.address, command.name, e)
            return False

        return True


    def _wake_waiters(self, result):

        with self._waiters_lock:
            waiters = self._waiters
            self._waiters = list()

        for mailbox in waiters:
            mailbox.put(result)


    def _dispatch(self, response):
        """ Handle one inbound envelope on the background thread.
        """

        kind = wire.response_kind(response)

        if kind == ResponseKind.MESSAGE:
            message = protocol.codec.decode(response.data)
            self._wake_waiters(message)

            callback = self._message_callback
            if callback is not None:
                try:
                    callback(message)
                except Exception:
                    logger.exception("%s: message callback failed", self.address)

        elif kind in fields.TRACE_KINDS:
            self._wake_waiters(None)

            callback = self._trace_callback
            if callback is not None:
                try:
                    callback(self.summarizers[kind].summarize(response.data))
                except Exception:
                    logger.exception("%s: trace callback failed", self.address)

        else:
            logger.debug("%s: ignoring envelope of kind %d", self.address, response.command)
            self._wake_waiters(None)


    def _stream_ended(self):

        with self._waiters_lock:
            self._remote_closed = True

        self._wake_waiters(None)


# end of class Session



def _receive(reference, stream):
    """ Background thread body for a :class:`Session`: read until the stream
        ends or the session is gone. *reference* is a weak reference to the
        session, dereferenced once per envelope.
    """

    while True:
        try:
            response = stream.recv()
        except transport.TransportClosedError as e:
            logger.debug("%s", e)
            break

        session = reference()
        if session is None:
            break

        session._dispatch(response)
        del session

    session = reference()
    if session is not None:
        session._stream_ended()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
