""" Runtime configuration for a lattice client. Every setting has a default
    taken from the process environment, the same variables a lattice host
    uses to find the bus; explicit arguments always win over the environment.
"""

import os


default_url = '127.0.0.1'
default_timeout = 600           # milliseconds
default_launch_timeout = 500    # milliseconds
default_transport = 'zmq'
default_log_level = 'WARNING'

URL = 'LATTICE_HOST'
CREDS = 'LATTICE_CREDS_FILE'
TIMEOUT = 'LATTICE_RPC_TIMEOUT_MILLIS'
LAUNCH_TIMEOUT = 'LATTICE_LAUNCH_TIMEOUT_MILLIS'
NAMESPACE = 'LATTICE_NAMESPACE'
TRANSPORT = 'LATTICE_TRANSPORT'
LOG_LEVEL = 'LATTICE_LOG_LEVEL'

transports = ('zmq', 'rabbitmq', 'local')


class Settings:
    """ Connection and timing parameters for a :class:`lattice.Client`.
        Timeouts are stored in seconds, though they are specified in
        milliseconds everywhere a human types them.

        :ivar url: Address of the nearest broker.
        :ivar creds: Path to a credentials file, or None.
        :ivar timeout: Fan-out collection window, in seconds.
        :ivar launch_timeout: Addressed command reply window, in seconds.
        :ivar namespace: Optional subject prefix, or None.
        :ivar transport: Name of the transport backend.
    """

    def __init__(self, url=None, creds=None, timeout=None, launch_timeout=None, namespace=None, transport=None):

        if url is None:
            url = default_url

        if timeout is None:
            timeout = default_timeout

        if launch_timeout is None:
            launch_timeout = default_launch_timeout

        if transport is None:
            transport = default_transport

        if namespace == '':
            namespace = None

        if creds == '':
            creds = None

        self.url = str(url)
        self.creds = creds
        self.timeout = milliseconds(timeout, 'timeout')
        self.launch_timeout = milliseconds(launch_timeout, 'launch timeout')
        self.namespace = namespace
        self.transport = transport.lower()

        if self.transport not in transports:
            raise ValueError('unknown transport: ' + repr(transport))


    def __repr__(self):
        values = (self.url, self.transport, self.namespace, self.timeout, self.launch_timeout)
        return 'Settings(url=%r, transport=%r, namespace=%r, timeout=%.3f, launch_timeout=%.3f)' % values


    @classmethod
    def from_environment(cls, environ=None, **overrides):
        """ Build a :class:`Settings` instance from the environment, with
            any keyword *overrides* that are not None taking precedence.
            The *environ* mapping defaults to :data:`os.environ`.
        """

        if environ is None:
            environ = os.environ

        arguments = dict()
        arguments['url'] = environ.get(URL)
        arguments['creds'] = environ.get(CREDS)
        arguments['timeout'] = environ.get(TIMEOUT)
        arguments['launch_timeout'] = environ.get(LAUNCH_TIMEOUT)
        arguments['namespace'] = environ.get(NAMESPACE)
        arguments['transport'] = environ.get(TRANSPORT)

        for key, value in overrides.items():
            if key not in arguments:
                raise TypeError('unexpected setting: ' + repr(key))
            if value is not None:
                arguments[key] = value

        return cls(**arguments)


# end of class Settings



def milliseconds(value, name='timeout'):
    """ Convert a millisecond count, as an int or a numeric string, to
        seconds. Negative or non-numeric values raise :class:`ValueError`.
    """

    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError('%s must be a number of milliseconds, not %r' % (name, value))

    if value < 0:
        raise ValueError('%s cannot be negative: %r' % (name, value))

    return value / 1000.0


def log_level(environ=None):
    if environ is None:
        environ = os.environ

    return environ.get(LOG_LEVEL, default_log_level)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
