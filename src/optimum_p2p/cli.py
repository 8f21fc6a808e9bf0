""" Command-line front end, installed as ``optimum-p2p``.

    optimum-p2p subscribe --addr 127.0.0.1:33221 --topic demo
    optimum-p2p publish --addr 127.0.0.1:33221 --topic demo --message hello
    optimum-p2p multi-publish --ipfile ips.txt --topic demo --message hello --count 10
    optimum-p2p multi-subscribe --ipfile ips.txt --topic demo --output data.tsv
    optimum-p2p proxy --rest-url http://localhost:8081 --grpc-addr localhost:50051 --topic demo
"""

import argparse
import logging
import sys
import threading

from . import config
from . import utils
from .multi import MultiPublish, MultiSubscribe, OutputSink, single_payload, sequence_payload
from .proxy import ProxyClient
from .session import Session

logger = logging.getLogger(__name__)


def _message_line(address, message):
    payload = message.payload
    return '\t'.join((address, message.source_node_id, str(len(payload)), utils.sha256_hex(payload)))



def _wait(duration):
    """ Block for *duration* seconds, or until interrupted if it is None.
    """

    try:
        threading.Event().wait(duration)
    except KeyboardInterrupt:
        pass



def subscribe(arguments):

    session = Session(arguments.addr)
    if session.ready == False:
        print('cannot connect to ' + arguments.addr, file=sys.stderr)
        return 1

    output = None
    if arguments.output:
        output = OutputSink(arguments.output)

    def received(message):
        line = _message_line(arguments.addr, message)
        print(line, flush=True)
        if output is not None:
            output.write(line)

    with session:
        session.set_message_callback(received)
        if session.subscribe(arguments.topic) == False:
            print('subscribe failed', file=sys.stderr)
            return 1

        _wait(arguments.duration)

    return 0



def publish(arguments):

    with Session(arguments.addr) as session:
        if session.ready == False:
            print('cannot connect to ' + arguments.addr, file=sys.stderr)
            return 1

        failures = 0

        for index in range(arguments.count):
            if arguments.count == 1:
                payload = single_payload(arguments.message.encode())
            else:
                payload = sequence_payload(index + 1)

            if session.publish(arguments.topic, payload):
                print('published %d bytes %s' % (len(payload), utils.sha256_hex(payload)))
            else:
                failures += 1

            if arguments.delay > 0 and index < arguments.count - 1:
                threading.Event().wait(arguments.delay)

    if failures:
        return 1
    return 0



def multi_publish(arguments):

    addresses = config.read_addresses(arguments.ipfile)
    if len(addresses) == 0:
        print('no node addresses in ' + arguments.ipfile, file=sys.stderr)
        return 1

    client = MultiPublish(addresses, output=arguments.output)
    published = client.publish_all(arguments.topic, arguments.message.encode(),
                                   arguments.count, arguments.delay)

    expected = len(addresses) * arguments.count
    print('published %d of %d messages' % (published, expected))

    if published < expected:
        return 1
    return 0



def multi_subscribe(arguments):

    addresses = config.read_addresses(arguments.ipfile)
    if len(addresses) == 0:
        print('no node addresses in ' + arguments.ipfile, file=sys.stderr)
        return 1

    client = MultiSubscribe(addresses)
    client.set_data_output_file(arguments.output)
    client.set_trace_output_file(arguments.trace_output)
    client.set_data_callback(lambda address, message: print(_message_line(address, message), flush=True))

    with client:
        active = client.subscribe_all(arguments.topic)
        if active == 0:
            print('no node accepted the subscription', file=sys.stderr)
            return 1

        logger.info("subscribed on %d of %d nodes", active, len(addresses))
        _wait(arguments.duration)

    return 0



def proxy(arguments):

    with ProxyClient(arguments.rest_url, arguments.grpc_addr) as client:
        if client.subscribe(client.client_id, arguments.topic, arguments.threshold) == False:
            print('subscribe via %s failed' % (arguments.rest_url,), file=sys.stderr)
            return 1

        if client.connect_stream() == False:
            print('cannot open stream to ' + arguments.grpc_addr, file=sys.stderr)
            return 1

        if arguments.message is not None:
            if client.publish(client.client_id, arguments.topic, arguments.message) == False:
                print('publish via %s failed' % (arguments.rest_url,), file=sys.stderr)
                return 1

        stop = threading.Event()
        if arguments.duration is not None:
            timer = threading.Timer(arguments.duration, stop.set)
            timer.daemon = True
            timer.start()

        try:
            while not stop.is_set():
                message = client.receive(timeout=1.0)
                if message is not None:
                    print('%s\t%s' % (message.topic, message.text), flush=True)
        except KeyboardInterrupt:
            pass

    return 0



def parser():

    parser = argparse.ArgumentParser(prog='optimum-p2p',
            description='Publish to and subscribe from mump2p nodes.')
    commands = parser.add_subparsers(dest='command', required=True)

    command = commands.add_parser('subscribe', help='subscribe on one node')
    command.add_argument('--addr', required=True, help='node address, host:port')
    command.add_argument('--topic', required=True)
    command.add_argument('--output', help='append received message lines to this file')
    command.add_argument('--duration', type=float, default=None,
            help='seconds to run before exiting (default: until interrupted)')
    command.set_defaults(handler=subscribe)

    command = commands.add_parser('publish', help='publish on one node')
    command.add_argument('--addr', required=True, help='node address, host:port')
    command.add_argument('--topic', required=True)
    command.add_argument('--message', required=True)
    command.add_argument('--count', type=int, default=1)
    command.add_argument('--delay', type=float, default=0, help='seconds between messages')
    command.set_defaults(handler=publish)

    command = commands.add_parser('multi-publish', help='publish on every node in a list')
    command.add_argument('--ipfile', required=True, help='file with one host:port per line')
    command.add_argument('--topic', required=True)
    command.add_argument('--message', required=True)
    command.add_argument('--count', type=int, default=1)
    command.add_argument('--delay', type=float, default=0, help='seconds between messages')
    command.add_argument('--output', help='append one line per publish to this file')
    command.set_defaults(handler=multi_publish)

    command = commands.add_parser('multi-subscribe', help='subscribe on every node in a list')
    command.add_argument('--ipfile', required=True, help='file with one host:port per line')
    command.add_argument('--topic', required=True)
    command.add_argument('--output', help='append one line per message to this file')
    command.add_argument('--trace-output', help='append one line per trace event to this file')
    command.add_argument('--duration', type=float, default=None,
            help='seconds to run before exiting (default: until interrupted)')
    command.set_defaults(handler=multi_subscribe)

    command = commands.add_parser('proxy', help='subscribe and publish through a proxy')
    command.add_argument('--rest-url', required=True, help='proxy control-plane base URL')
    command.add_argument('--grpc-addr', required=True, help='proxy data-plane address, host:port')
    command.add_argument('--topic', required=True)
    command.add_argument('--message', help='publish this text after subscribing')
    command.add_argument('--threshold', type=float, default=0.1)
    command.add_argument('--duration', type=float, default=None,
            help='seconds to run before exiting (default: until interrupted)')
    command.set_defaults(handler=proxy)

    return parser



def main(argv=None):

    arguments = parser().parse_args(argv)
    logging.basicConfig(level=config.log_level(),
            format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    if getattr(arguments, 'count', 1) < 0:
        print('--count cannot be negative', file=sys.stderr)
        return 2

    return arguments.handler(arguments)


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
