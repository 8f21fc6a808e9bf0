""" Process-level configuration for optimum_p2p. Nothing here is cached:
    the environment is consulted every time a default is needed, so a
    caller can adjust ``OPTIMUM_P2P_*`` variables at runtime and have the
    next :class:`optimum_p2p.Session` pick up the change.

    This module also implements the node-list format used by the
    multi-node orchestrator: one ``host:port`` per line, with blank lines
    and ``#`` comments ignored.
"""

import logging
import os

logger = logging.getLogger(__name__)


defaults = dict()
defaults['OPTIMUM_P2P_CONNECT_TIMEOUT'] = 5.0
defaults['OPTIMUM_P2P_CLOSE_TIMEOUT'] = 2.0
defaults['OPTIMUM_P2P_HTTP_TIMEOUT'] = 10.0
defaults['OPTIMUM_P2P_LOG_LEVEL'] = 'WARNING'


def _seconds(variable):

    default = defaults[variable]

    try:
        value = os.environ[variable]
    except KeyError:
        return default

    value = value.strip()
    if value == '':
        return default

    try:
        value = float(value)
    except ValueError:
        raise ValueError("%s must be a number of seconds, not %r" % (variable, value))

    if value < 0:
        raise ValueError("%s cannot be negative: %r" % (variable, value))

    return value



def connect_timeout():
    """ Seconds a :class:`optimum_p2p.Session` waits for its channel to
        become ready before giving up and entering the closed state.
    """

    return _seconds('OPTIMUM_P2P_CONNECT_TIMEOUT')



def close_timeout():
    """ Seconds a session waits, after half-closing its request stream, for
        the node to end the response stream before the call is cancelled.
    """

    return _seconds('OPTIMUM_P2P_CLOSE_TIMEOUT')



def http_timeout():
    return _seconds('OPTIMUM_P2P_HTTP_TIMEOUT')



def log_level():

    level = os.environ.get('OPTIMUM_P2P_LOG_LEVEL', '').strip()
    if level == '':
        level = defaults['OPTIMUM_P2P_LOG_LEVEL']

    return level.upper()



def parse_addresses(lines):
    """ Return the list of node addresses found in the iterable *lines*.
        Surrounding whitespace, including carriage returns, is stripped
        from every line; empty lines and lines starting with ``#`` are
        skipped. Duplicates are preserved, in order.
    """

    addresses = list()

    for line in lines:
        line = line.strip(' \t\r\n')

        if line == '' or line[0] == '#':
            continue

        addresses.append(line)

    return addresses



def read_addresses(filename):
    """ Read a node list from *filename*, as described for
        :func:`parse_addresses`. An unreadable file yields an empty list;
        the caller decides whether running against zero nodes is an error.
    """

    try:
        with open(filename, 'r') as handle:
            return parse_addresses(handle)
    except OSError as e:
        logger.warning("cannot read node list %s: %s", filename, e)
        return list()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
