""" Client for a node reached through a proxy, which splits the work over
    two protocols: subscriptions and publications are REST calls on the
    control plane, while delivered messages arrive on a gRPC data-plane
    stream. The two are correlated by a client identifier, sent as the first
    frame on the stream.

    A typical sequence::

        client = optimum_p2p.ProxyClient('http://localhost:8081', 'localhost:50051')
        client.subscribe(client.client_id, 'news', threshold=0.7)
        client.connect_stream()
        client.publish(client.client_id, 'news', 'hello')
        message = client.receive(timeout=5)
"""

import logging
import queue
import threading

import requests

from . import config
from . import json
from . import transport
from . import utils

from .protocol import fields
from .protocol import wire
from .protocol.message import ProxyMessage

logger = logging.getLogger(__name__)

# Placed on the inbox when the data-plane stream ends
_CLOSED = object()


def generate_client_id():
    """ Return a new identifier of the form ``client_<8 hex digits>``.
        Collisions are possible in principle (32 bits of entropy) and are
        not guarded against.
    """

    return 'client_' + utils.random_hex(4)



class ProxyClient:
    """ Talk to the proxy whose control plane is at *rest_url* (for example
        ``http://localhost:8081``) and whose data-plane stream is served at
        *grpc_address* (``host:port``). If no *client_id* is provided one is
        generated, see :func:`generate_client_id`.

        Control-plane calls return True only for a 2xx response; transport
        errors and other statuses both return False.
    """

    def __init__(self, rest_url, grpc_address, client_id=None, http_timeout=None,
                 connect_timeout=None, close_timeout=None):

        if client_id is None:
            client_id = generate_client_id()
        if http_timeout is None:
            http_timeout = config.http_timeout()
        if connect_timeout is None:
            connect_timeout = config.connect_timeout()
        if close_timeout is None:
            close_timeout = config.close_timeout()

        self.rest_url = rest_url.rstrip('/')
        self.grpc_address = grpc_address
        self.client_id = client_id
        self.http_timeout = http_timeout
        self.connect_timeout = connect_timeout
        self.close_timeout = close_timeout

        self.http = requests.Session()
        self.http.headers['Content-Type'] = 'application/json'

        self.stream = None
        self.thread = None
        self._inbox = None
        self._lock = threading.Lock()
        self._closed = False


    def __enter__(self):
        return self


    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


    def __del__(self):

        try:
            self.close()
        except AttributeError:
            pass


    def subscribe(self, client_id, topic, threshold=0.1):
        """ Register *client_id* for messages on *topic*. The *threshold* is
            passed through to the proxy unchanged.
        """

        body = dict()
        body['client_id'] = client_id
        body['topic'] = topic
        body['threshold'] = float(threshold)

        return self._post(fields.REST_SUBSCRIBE, body)


    def publish(self, client_id, topic, message):
        """ Publish the text *message* on *topic* on behalf of *client_id*.
        """

        body = dict()
        body['client_id'] = client_id
        body['topic'] = topic
        body['message'] = message

        return self._post(fields.REST_PUBLISH, body)


    def connect_stream(self, client_id=None):
        """ Open the data-plane stream and identify it with *client_id*
            (this client's own identifier by default). Any previously
            connected stream is closed first. Returns True if the stream
            is open and the identifier was queued; always False once
            :meth:`close` has been called.
        """

        if client_id is None:
            client_id = self.client_id

        if self._closed:
            logger.warning("%s: client is closed, not connecting", self.grpc_address)
            return False

        self._disconnect()

        options = transport.stream.UNLIMITED + transport.stream.LARGE_WINDOWS
        stream = transport.stream.Stream(self.grpc_address, fields.PROXY_STREAM,
                request_serializer=wire.ProxyEnvelope.SerializeToString,
                response_deserializer=wire.ProxyEnvelope.FromString,
                options=options, connect_timeout=self.connect_timeout)

        try:
            stream.open()
            stream.send(wire.ProxyEnvelope(client_id=client_id))
        except transport.TransportError as e:
            logger.warning("%s: data-plane stream not established: %s", self.grpc_address, e)
            stream.close()
            return False

        inbox = queue.SimpleQueue()
        thread = threading.Thread(target=_read, args=(stream, inbox))
        thread.name = 'optimum_p2p.ProxyClient:' + str(self.grpc_address)
        thread.daemon = True

        with self._lock:
            closed = self._closed
            if closed == False:
                self.stream = stream
                self.thread = thread
                self._inbox = inbox

        if closed:
            stream.close()
            return False

        thread.start()
        return True


    def receive(self, timeout=1.0):
        """ Wait up to *timeout* seconds for the next message on the
            data-plane stream. Returns a
            :class:`~optimum_p2p.protocol.ProxyMessage`, or None on timeout,
            if the stream has ended, or if no stream is connected.
        """

        inbox = self._inbox
        if inbox is None:
            return None

        try:
            item = inbox.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _CLOSED:
            # Leave the marker in place for any later caller.
            inbox.put(_CLOSED)
            return None

        return item


    def close(self):
        """ Tear down the data-plane stream and the HTTP session. Safe to
            call repeatedly. A closed client cannot be reconnected; the
            control-plane calls and :meth:`connect_stream` return False.
        """

        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._disconnect()
        self.http.close()


    def _disconnect(self):

        with self._lock:
            stream = self.stream
            thread = self.thread
            self.stream = None
            self.thread = None

        if stream is None:
            return

        # Half-close, then give the proxy the chance to end the stream; the
        # queued frames, the client id among them, are flushed meanwhile.

        stream.writes_done()

        if thread is not None and thread is not threading.current_thread():
            thread.join(self.close_timeout)
            if thread.is_alive():
                logger.debug("%s: stream still open after %s sec, cancelling",
                        self.grpc_address, self.close_timeout)
                stream.cancel()
                thread.join()
        else:
            stream.cancel()

        stream.close()


    def _post(self, path, body):

        if self._closed:
            logger.warning("%s: client is closed, not posting", self.rest_url)
            return False

        url = self.rest_url + path

        try:
            response = self.http.post(url, data=json.dumps(body), timeout=self.http_timeout)
        except requests.RequestException as e:
            logger.warning("POST %s failed: %s", url, e)
            return False

        if 200 <= response.status_code < 300:
            return True

        logger.warning("POST %s returned %d", url, response.status_code)
        return False


# end of class ProxyClient



def _read(stream, inbox):
    """ Background thread body: move every envelope from *stream* onto
        *inbox* until the stream ends.
    """

    while True:
        try:
            envelope = stream.recv()
        except transport.TransportClosedError as e:
            logger.debug("%s", e)
            break

        text = envelope.message.decode('utf-8', 'replace')
        inbox.put(ProxyMessage(topic=envelope.topic, text=text, message_id=envelope.message_id))

    inbox.put(_CLOSED)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
