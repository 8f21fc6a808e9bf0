""" Small helpers shared by the session, orchestrator, and proxy modules:
    digests and hex previews for output logs, and the random material used
    to build client identifiers and synthetic payloads.
"""

import hashlib
import os
import time


def sha256_hex(data):
    """ Return the lowercase hexadecimal SHA-256 digest of *data*, which
        must be a bytes-like object. The digest of an empty sequence is the
        well-known ``e3b0c442...b855`` constant.
    """

    return hashlib.sha256(bytes(data)).hexdigest()



def head_hex(data, n):
    """ Return the hexadecimal representation of at most the first *n*
        bytes of *data*. An empty *data* or a non-positive *n* yields an
        empty string.
    """

    if n <= 0:
        return ''

    return bytes(data[:n]).hex()



def random_hex(count=4):
    """ Return *count* freshly generated random bytes, hex encoded.
    """

    return os.urandom(count).hex()



def timestamp_ns():
    return time.time_ns()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
