''' JSON handling for message bodies and proxy requests. The fastest
    available library is used: msgspec, then orjson, then the standard
    library. Whichever is active, :func:`dumps` returns bytes, :func:`loads`
    accepts bytes, and :data:`DecodeError` names every exception malformed
    input can raise.
'''


def _select():

    try:
        import msgspec
    except ImportError:
        pass
    else:
        decoder = msgspec.json.Decoder()
        errors = (msgspec.DecodeError, ValueError, RecursionError)
        return 'msgspec', msgspec.json.Encoder().encode, decoder.decode, errors

    try:
        import orjson
    except ImportError:
        pass
    else:
        errors = (orjson.JSONDecodeError, ValueError, RecursionError)
        return 'orjson', orjson.dumps, orjson.loads, errors

    import json

    def dumps(document):
        return json.dumps(document).encode()

    return 'json', dumps, json.loads, (ValueError, RecursionError)


backend, dumps, loads, DecodeError = _select()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
