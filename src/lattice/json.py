''' Wrapper module around the libraries that handle the equivalent of
    :func:`json.loads` and :func:`json.dumps` for output rendering and log
    lines. msgspec is used by default; orjson can be selected instead with
    :func:`use`, or by setting LATTICE_JSON=orjson in the environment.
'''

import os

import msgspec
import msgspec.json
import orjson


ENVIRONMENT = 'LATTICE_JSON'
default_library = 'msgspec'
libraries = ('msgspec', 'orjson')

library = None
dumps = None
loads = None
DecodeError = None


# The msgspec 'encode' operation returns bytes, as does orjson.dumps. Callers
# can rely on 'dumps' always returning bytes, and 'loads' accepting either
# bytes or str.

def use(name):
    ''' Select the JSON library by *name*, one of :data:`libraries`. The
        module-level :func:`dumps`, :func:`loads`, and :class:`DecodeError`
        are rebound in place; callers must reach them through this module.
    '''

    global library, dumps, loads, DecodeError

    name = name.lower().strip()

    if name == 'msgspec':
        encoder = msgspec.json.Encoder()
        decoder = msgspec.json.Decoder()
        dumps = encoder.encode
        loads = decoder.decode
        DecodeError = msgspec.DecodeError
    elif name == 'orjson':
        dumps = orjson.dumps
        loads = orjson.loads
        DecodeError = orjson.JSONDecodeError
    else:
        raise ValueError('unknown JSON library: ' + repr(name))

    library = name


use(os.environ.get(ENVIRONMENT) or default_library)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
