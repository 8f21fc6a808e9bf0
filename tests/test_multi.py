import functools
import re
import threading
import time
import weakref

import optimum_p2p
import pytest

from optimum_p2p import multi
from optimum_p2p import utils
from optimum_p2p.protocol import wire
from optimum_p2p.protocol.fields import Command, ResponseKind

from conftest import message_response, wait_for


def read_lines(filename):
    with open(filename, 'r') as handle:
        return handle.read().splitlines()


def test_single_payload():

    payload = multi.single_payload(b'Hello', timestamp=1700000000123456789)
    assert payload == b'[1700000000123456789 5] Hello'

    payload = multi.single_payload(b'')
    assert re.match(rb'^\[\d+ 0\] $', payload)


def test_sequence_payload():

    payload = multi.sequence_payload(3, timestamp=42, suffix='0a1b2c3d')
    assert payload == b'[42 8] 3 - 0a1b2c3d XXX'

    payload = multi.sequence_payload(1)
    assert re.match(rb'^\[\d+ 8\] 1 - [0-9a-f]{8} XXX$', payload)


def test_output_sink(tmp_path):
    """ Many threads appending at once never produce a partial line.
    """

    filename = str(tmp_path / 'out.tsv')
    sink = multi.OutputSink(filename)

    def writer(number):
        for index in range(50):
            sink.write('writer-%d' % (number,), index, 'x' * 200)

    threads = [threading.Thread(target=writer, args=(number,)) for number in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    lines = read_lines(filename)
    assert len(lines) == 400

    for line in lines:
        fields = line.split('\t')
        assert len(fields) == 3
        assert fields[2] == 'x' * 200


def test_output_sink_unwritable(tmp_path):

    sink = multi.OutputSink(str(tmp_path / 'missing' / 'out.tsv'))
    sink.write('this', 'goes', 'nowhere')


def test_publish_all(node, other_node, tmp_path):

    output = str(tmp_path / 'publish.tsv')
    client = optimum_p2p.MultiPublish([node.address, other_node.address], output=output)

    published = client.publish_all('alpha', b'Hello')
    assert published == 2

    for fake in (node, other_node):
        publishes = wait_for(lambda: fake.commands(Command.PUBLISH_DATA))
        assert len(publishes) == 1
        assert publishes[0].topic == 'alpha'
        assert re.match(rb'^\[\d+ 5\] Hello$', publishes[0].data)

    lines = read_lines(output)
    assert len(lines) == 2

    addresses = set()
    for line in lines:
        address, size, digest = line.split('\t')
        addresses.add(address)
        assert int(size) == len(publishes[0].data)
        assert len(digest) == 64

    assert addresses == set((node.address, other_node.address))


def test_publish_count(node, tmp_path):

    output = str(tmp_path / 'publish.tsv')
    client = optimum_p2p.MultiPublish([node.address])
    client.set_output_file(output)

    begin = time.time()
    published = client.publish_all('alpha', b'ignored', count=3, delay=0.05)
    elapsed = time.time() - begin

    assert published == 3

    # The delay applies between messages, not after the last one.

    assert elapsed >= 0.1

    publishes = wait_for(lambda: len(node.commands(Command.PUBLISH_DATA)) == 3 and node.commands(Command.PUBLISH_DATA))
    for index, request in enumerate(publishes):
        assert re.match(rb'^\[\d+ 8\] %d - [0-9a-f]{8} XXX$' % (index + 1,), request.data)

    lines = read_lines(output)
    assert len(lines) == 3

    digests = [line.split('\t')[2] for line in lines]
    assert digests == [utils.sha256_hex(request.data) for request in publishes]


def test_publish_isolation(node, other_node, unreachable, tmp_path):
    """ One unreachable node neither blocks nor spoils delivery to the
        others; only successful publishes are logged.
    """

    output = str(tmp_path / 'publish.tsv')
    addresses = [node.address, unreachable, other_node.address]
    client = optimum_p2p.MultiPublish(addresses, output=output, connect_timeout=0.3)

    published = client.publish_all('alpha', b'data', count=2)
    assert published == 4

    lines = read_lines(output)
    assert len(lines) == 4

    logged = [line.split('\t')[0] for line in lines]
    assert logged.count(node.address) == 2
    assert logged.count(other_node.address) == 2
    assert unreachable not in logged


def test_publish_duplicates(node):

    client = optimum_p2p.MultiPublish([node.address, node.address])
    assert client.publish_all('alpha', b'twice') == 2
    assert wait_for(lambda: len(node.commands(Command.PUBLISH_DATA)) == 2)


def test_publish_arguments(node):

    client = optimum_p2p.MultiPublish([node.address])

    with pytest.raises(TypeError):
        client.publish_all('alpha', 'text')

    with pytest.raises(ValueError):
        client.publish_all('alpha', b'data', count=-1)

    assert client.publish_all('alpha', b'data', count=0) == 0
    assert optimum_p2p.MultiPublish([]).publish_all('alpha', b'data') == 0


def test_subscribe_all(node, other_node, unreachable, tmp_path):

    received = list()
    traces = list()
    data_output = str(tmp_path / 'data.tsv')
    trace_output = str(tmp_path / 'trace.tsv')

    addresses = [node.address, unreachable, other_node.address]

    with optimum_p2p.MultiSubscribe(addresses, connect_timeout=0.3) as client:
        client.set_data_callback(lambda address, message: received.append((address, message)))
        client.set_trace_callback(lambda address, text: traces.append((address, text)))
        client.set_data_output_file(data_output)
        client.set_trace_output_file(trace_output)

        assert client.subscribe_all('alpha') == 2
        assert client.active == [node.address, other_node.address]

        for fake in (node, other_node):
            subscribes = wait_for(lambda: fake.commands(Command.SUBSCRIBE_TO_TOPIC))
            assert subscribes[0].topic == 'alpha'

        node.push(message_response('alpha', b'from one', source='source-1'))
        other_node.push(message_response('alpha', b'from two', source='source-2'))
        other_node.push(wire.Response(command=int(ResponseKind.TRACE_GOSSIPSUB), data=b'\x0f'))

        assert wait_for(lambda: len(received) == 2 and len(traces) == 1)

    by_address = dict(received)
    assert by_address[node.address].payload == b'from one'
    assert by_address[other_node.address].payload == b'from two'

    assert traces == [(other_node.address, '[GossipSub Trace] 0f...')]

    lines = sorted(read_lines(data_output))
    expected = list()
    expected.append('\t'.join((node.address, 'source-1', '8', utils.sha256_hex(b'from one'))))
    expected.append('\t'.join((other_node.address, 'source-2', '8', utils.sha256_hex(b'from two'))))
    assert lines == sorted(expected)

    assert read_lines(trace_output) == [other_node.address + '\t[GossipSub Trace] 0f...']

    # Leaving the context shut every session down.

    assert client.sessions == []


def test_subscribe_again(node):

    client = optimum_p2p.MultiSubscribe([node.address])

    assert client.subscribe_all('alpha') == 1
    first = client.sessions[0]

    assert client.subscribe_all('beta') == 1
    assert first.ready == False
    assert client.sessions[0].ready == True

    client.shutdown()
    client.shutdown()


def test_subscribe_none_reachable(unreachable):

    client = optimum_p2p.MultiSubscribe([unreachable, unreachable], connect_timeout=0.2)
    assert client.subscribe_all('alpha') == 0
    assert client.active == []


def test_relay():

    class Owner:
        def handle(self, address, value):
            self.seen = (address, value)

    owner = Owner()
    relay = functools.partial(multi._relay, weakref.WeakMethod(owner.handle), 'host:1')

    relay('value')
    assert owner.seen == ('host:1', 'value')

    del owner
    relay('ignored')


def test_subscribe_abandoned(node):
    """ Discarding the orchestrator shuts its sessions down.
    """

    client = optimum_p2p.MultiSubscribe([node.address])
    client.subscribe_all('alpha')
    thread = client.sessions[0].thread
    del client

    assert wait_for(lambda: thread.is_alive() == False)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
