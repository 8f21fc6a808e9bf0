""" Fan publish and subscribe operations out across many nodes. Every node
    gets its own :class:`optimum_p2p.Session`; a failure on one node never
    affects the others, and nothing here retries. Results can be recorded,
    one tab-separated line per successful operation, to an
    :class:`OutputSink`.
"""

import concurrent.futures
import functools
import logging
import threading
import time
import weakref

from . import utils
from .session import Session

logger = logging.getLogger(__name__)


class OutputSink:
    """ Append tab-separated lines to *filename*. The file is opened, written
        and flushed once per line, under a lock, so that concurrent writers
        never interleave within a line. Sinks that may point at the same
        file should share one *lock*.

        Write failures are logged and otherwise ignored; losing a log line
        must not interfere with message delivery.
    """

    def __init__(self, filename, lock=None):

        if lock is None:
            lock = threading.Lock()

        self.filename = filename
        self.lock = lock


    def __repr__(self):
        return 'OutputSink(%r)' % (self.filename,)


    def write(self, *fields):

        line = '\t'.join(str(field) for field in fields) + '\n'

        with self.lock:
            try:
                with open(self.filename, 'a') as handle:
                    handle.write(line)
                    handle.flush()
            except OSError as e:
                logger.warning("cannot append to %s: %s", self.filename, e)


# end of class OutputSink



def single_payload(data, timestamp=None):
    """ Return *data* prefixed with ``"[<nanoseconds> <len(data)>] "``.
    """

    if timestamp is None:
        timestamp = utils.timestamp_ns()

    data = bytes(data)
    prefix = '[%d %d] ' % (timestamp, len(data))
    return prefix.encode() + data



def sequence_payload(index, timestamp=None, suffix=None):
    """ Return a synthetic payload for message number *index* (1-based) of
        a sequence: ``"[<nanoseconds> <len(suffix)>] <index> - <suffix> XXX"``,
        where *suffix* defaults to four fresh random bytes, hex encoded.
    """

    if timestamp is None:
        timestamp = utils.timestamp_ns()
    if suffix is None:
        suffix = utils.random_hex(4)

    payload = '[%d %d] %d - %s XXX' % (timestamp, len(suffix), index, suffix)
    return payload.encode()



class MultiPublish:
    """ Publish to every node in *addresses* concurrently. Duplicate
        addresses are treated as independent nodes. If an *output* filename
        is provided (or set later via :func:`set_output_file`), one line of
        ``address, size, sha256`` is appended per successful publish.
    """

    def __init__(self, addresses, output=None, connect_timeout=None, close_timeout=None):

        self.addresses = list(addresses)
        self.connect_timeout = connect_timeout
        self.close_timeout = close_timeout
        self.output = None

        self.set_output_file(output)


    def set_output_file(self, filename):

        if filename is None:
            self.output = None
        else:
            self.output = OutputSink(filename)


    def publish_all(self, topic, data, count=1, delay=0):
        """ Publish on *topic* to every node, *count* times per node, waiting
            *delay* seconds between consecutive messages. With a *count* of
            one the *data* is sent with a timestamp prefix; with a larger
            *count* each message is a synthetic, numbered payload and *data*
            is not used. Returns once every node has finished, with the total
            number of successful publishes.
        """

        if isinstance(data, str):
            raise TypeError('publish_all() requires bytes, not str')

        count = int(count)
        if count < 0:
            raise ValueError('count cannot be negative: ' + str(count))

        if delay is None or delay < 0:
            delay = 0

        if len(self.addresses) == 0:
            return 0

        data = bytes(data)
        workers = concurrent.futures.ThreadPoolExecutor(max_workers=len(self.addresses))

        with workers:
            futures = dict()
            for address in self.addresses:
                future = workers.submit(self._publish_node, address, topic, data, count, delay)
                futures[future] = address

        total = 0

        for future, address in futures.items():
            try:
                total += future.result()
            except Exception:
                logger.exception("%s: publishing failed", address)

        return total


    def _publish_node(self, address, topic, data, count, delay):

        published = 0
        session = Session(address, self.connect_timeout, self.close_timeout)

        try:
            if session.ready == False:
                logger.warning("%s: node unreachable, nothing published", address)
                return 0

            for index in range(count):
                if count == 1:
                    payload = single_payload(data)
                else:
                    payload = sequence_payload(index + 1)

                if session.publish(topic, payload):
                    published += 1
                    self._record(address, payload)
                else:
                    logger.info("%s: publish %d of %d failed", address, index + 1, count)

                if delay > 0 and index < count - 1:
                    time.sleep(delay)
        finally:
            session.shutdown()

        return published


    def _record(self, address, payload):

        output = self.output
        if output is not None:
            output.write(address, len(payload), utils.sha256_hex(payload))


# end of class MultiPublish



class MultiSubscribe:
    """ Subscribe to a topic on every node in *addresses* and funnel all
        inbound messages to one data callback, tagged with the address of
        the node that delivered them. Nodes that cannot be reached, or that
        refuse the subscription, are dropped without retry.

        The sessions live until :func:`shutdown` is called, the context
        manager exits, or this instance is discarded.
    """

    def __init__(self, addresses, connect_timeout=None, close_timeout=None):

        self.addresses = list(addresses)
        self.connect_timeout = connect_timeout
        self.close_timeout = close_timeout

        self.sessions = list()
        self._sessions_lock = threading.Lock()

        self._data_callback = None
        self._trace_callback = None

        # Both output files share a lock, in case they are the same file.

        self._output_lock = threading.Lock()
        self.data_output = None
        self.trace_output = None


    def __enter__(self):
        return self


    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()


    def __del__(self):

        try:
            self.shutdown()
        except AttributeError:
            pass


    @property
    def active(self):
        """ The addresses with an active subscription, in subscription order.
        """

        return [session.address for session in self.sessions]


    def set_data_callback(self, callback):
        """ *callback* will be invoked as ``callback(address, message)`` for
            every inbound :class:`~optimum_p2p.protocol.DomainMessage`.
        """

        self._data_callback = callback


    def set_trace_callback(self, callback):
        """ *callback* will be invoked as ``callback(address, text)`` for
            every inbound trace event.
        """

        self._trace_callback = callback


    def set_data_output_file(self, filename):

        if filename is None:
            self.data_output = None
        else:
            self.data_output = OutputSink(filename, self._output_lock)


    def set_trace_output_file(self, filename):

        if filename is None:
            self.trace_output = None
        else:
            self.trace_output = OutputSink(filename, self._output_lock)


    def subscribe_all(self, topic):
        """ Open a session to every node and subscribe it to *topic*. Any
            sessions from a previous call are shut down first. Returns the
            number of nodes with an active subscription.
        """

        self.shutdown()

        if len(self.addresses) == 0:
            return 0

        workers = concurrent.futures.ThreadPoolExecutor(max_workers=len(self.addresses))

        with workers:
            futures = list()
            for address in self.addresses:
                futures.append(workers.submit(self._subscribe_node, address, topic))

        sessions = list()

        for future in futures:
            try:
                session = future.result()
            except Exception:
                logger.exception("subscription failed")
                continue

            if session is not None:
                sessions.append(session)

        with self._sessions_lock:
            self.sessions = sessions

        return len(sessions)


    def shutdown(self):
        """ Shut down every active session. Safe to call repeatedly.
        """

        with self._sessions_lock:
            sessions = self.sessions
            self.sessions = list()

        for session in sessions:
            session.shutdown()


    def _subscribe_node(self, address, topic):

        session = Session(address, self.connect_timeout, self.close_timeout)

        # The relays only hold a weak reference back to this instance,
        # otherwise every session would keep it alive.

        handler = weakref.WeakMethod(self._handle_message)
        session.set_message_callback(functools.partial(_relay, handler, address))

        handler = weakref.WeakMethod(self._handle_trace)
        session.set_trace_callback(functools.partial(_relay, handler, address))

        if session.subscribe(topic):
            return session

        logger.warning("%s: not subscribed to %s", address, topic)
        session.shutdown()
        return None


    def _handle_message(self, address, message):

        callback = self._data_callback
        if callback is not None:
            try:
                callback(address, message)
            except Exception:
                logger.exception("%s: data callback failed", address)

        output = self.data_output
        if output is not None:
            payload = message.payload
            output.write(address, message.source_node_id, len(payload), utils.sha256_hex(payload))


    def _handle_trace(self, address, text):

        callback = self._trace_callback
        if callback is not None:
            try:
                callback(address, text)
            except Exception:
                logger.exception("%s: trace callback failed", address)

        output = self.trace_output
        if output is not None:
            output.write(address, text)


# end of class MultiSubscribe



def _relay(handler, address, *args):
    """ Session callback: forward to the weakly referenced bound method
        *handler*, prefixing the arguments with the node *address*. Does
        nothing once the orchestrator is gone.
    """

    method = handler()
    if method is None:
        return

    method(address, *args)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
