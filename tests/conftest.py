import base64
import concurrent.futures
import http.server
import json
import queue
import threading
import time

import grpc
import pytest

from optimum_p2p.protocol import wire
from optimum_p2p.protocol.fields import Command, ResponseKind


def wait_for(predicate, timeout=5):
    """ Poll *predicate* until it returns something true, or *timeout*
        seconds elapse. Returns the last value returned by *predicate*.
    """

    expiration = time.time() + timeout

    while True:
        result = predicate()
        if result or time.time() > expiration:
            return result
        time.sleep(0.01)



def message_response(topic, data, source='node-1', message_id='m-1'):

    document = dict()
    document['MessageID'] = message_id
    document['Topic'] = topic
    document['SourceNodeID'] = source
    document['Message'] = base64.b64encode(data).decode()

    return wire.Response(command=int(ResponseKind.MESSAGE), data=json.dumps(document).encode())



class FakeNode:
    """ In-process stand-in for a node's CommandStream service. Every request
        is recorded; a publish on a topic the same stream subscribed to is
        echoed back as a MESSAGE envelope. When *stubborn* is True the node
        ignores the client's half-close and never ends the stream on its own.
    """

    def __init__(self, node_id='node-1', stubborn=False):

        self.node_id = node_id
        self.stubborn = stubborn
        self.requests = list()
        self.streams = list()
        self.lock = threading.Lock()

        workers = concurrent.futures.ThreadPoolExecutor(max_workers=32)
        self.server = grpc.server(workers)

        method = grpc.stream_stream_rpc_method_handler(self.listen,
                request_deserializer=wire.Request.FromString,
                response_serializer=wire.Response.SerializeToString)
        handler = grpc.method_handlers_generic_handler('proto.CommandStream', {'ListenCommands': method})
        self.server.add_generic_rpc_handlers((handler,))

        port = self.server.add_insecure_port('127.0.0.1:0')
        self.address = '127.0.0.1:%d' % (port,)
        self.server.start()


    def listen(self, request_iterator, context):

        outbox = queue.SimpleQueue()
        with self.lock:
            self.streams.append(outbox)

        context.add_callback(lambda: outbox.put(None))

        def consume():
            subscribed = set()
            try:
                for request in request_iterator:
                    with self.lock:
                        self.requests.append(request)

                    if request.command == Command.SUBSCRIBE_TO_TOPIC:
                        subscribed.add(request.topic)
                    elif request.command == Command.UNSUBSCRIBE_FROM_TOPIC:
                        subscribed.discard(request.topic)
                    elif request.command == Command.PUBLISH_DATA and request.topic in subscribed:
                        outbox.put(message_response(request.topic, request.data, self.node_id))
            except grpc.RpcError:
                pass

            if self.stubborn == False:
                outbox.put(None)

        thread = threading.Thread(target=consume)
        thread.daemon = True
        thread.start()

        while True:
            response = outbox.get()
            if response is None:
                return
            yield response


    def push(self, response):
        """ Send *response* on every open stream.
        """

        with self.lock:
            streams = list(self.streams)

        for outbox in streams:
            outbox.put(response)


    def commands(self, command=None):

        with self.lock:
            requests = list(self.requests)

        if command is None:
            return requests

        return [request for request in requests if request.command == command]


    def stop(self):
        self.server.stop(None)



class FakeProxy:
    """ In-process stand-in for a proxy: an HTTP control plane that records
        every POST, and a ProxyStream data plane that records the client id
        sent as the first frame. The stream ends when the client half-closes,
        unless *hold_open* is set.
    """

    def __init__(self, status=200):

        self.status = status
        self.posts = list()
        self.hold_open = False
        self.client_ids = list()
        self.streams = list()
        self.lock = threading.Lock()

        workers = concurrent.futures.ThreadPoolExecutor(max_workers=8)
        self.server = grpc.server(workers)

        method = grpc.stream_stream_rpc_method_handler(self.client_stream,
                request_deserializer=wire.ProxyEnvelope.FromString,
                response_serializer=wire.ProxyEnvelope.SerializeToString)
        handler = grpc.method_handlers_generic_handler('proto.ProxyStream', {'ClientStream': method})
        self.server.add_generic_rpc_handlers((handler,))

        port = self.server.add_insecure_port('127.0.0.1:0')
        self.grpc_address = '127.0.0.1:%d' % (port,)
        self.server.start()

        proxy = self

        class Handler(http.server.BaseHTTPRequestHandler):

            def do_POST(self):
                length = int(self.headers.get('Content-Length', 0))
                body = json.loads(self.rfile.read(length))

                with proxy.lock:
                    proxy.posts.append((self.path, self.headers.get('Content-Type'), body))

                self.send_response(proxy.status)
                self.send_header('Content-Length', '0')
                self.end_headers()

            def log_message(self, *args):
                pass

        self.http = http.server.ThreadingHTTPServer(('127.0.0.1', 0), Handler)
        self.rest_url = 'http://127.0.0.1:%d' % (self.http.server_address[1],)

        self.http_thread = threading.Thread(target=self.http.serve_forever)
        self.http_thread.daemon = True
        self.http_thread.start()


    def client_stream(self, request_iterator, context):

        outbox = queue.SimpleQueue()
        context.add_callback(lambda: outbox.put(None))

        def consume():
            try:
                for request in request_iterator:
                    if request.client_id:
                        with self.lock:
                            self.client_ids.append(request.client_id)
                            self.streams.append(outbox)
            except grpc.RpcError:
                pass
            if self.hold_open == False:
                outbox.put(None)

        thread = threading.Thread(target=consume)
        thread.daemon = True
        thread.start()

        while True:
            response = outbox.get()
            if response is None:
                return
            yield response


    def deliver(self, topic, text, message_id=''):

        envelope = wire.ProxyEnvelope(topic=topic, message=text.encode(), message_id=message_id)

        with self.lock:
            streams = list(self.streams)

        for outbox in streams:
            outbox.put(envelope)


    def stop(self):
        self.http.shutdown()
        self.http.server_close()
        self.server.stop(None)



@pytest.fixture
def node():
    fake = FakeNode()
    yield fake
    fake.stop()


@pytest.fixture
def other_node():
    fake = FakeNode(node_id='node-2')
    yield fake
    fake.stop()


@pytest.fixture
def stubborn_node():
    fake = FakeNode(stubborn=True)
    yield fake
    fake.stop()


@pytest.fixture
def proxy():
    fake = FakeProxy()
    yield fake
    fake.stop()


@pytest.fixture
def unreachable():
    """ An address nothing listens on.
    """

    return '127.0.0.1:1'


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
