"""Protocol-level exceptions.

Transport failures live in :mod:`lattice.transport.base`; the errors here
describe messages that arrived intact but do not mean what they should.
"""


class ProtocolError(Exception):
    """Base class for all protocol-layer errors."""


class DecodeError(ProtocolError):
    """A payload does not match the schema expected for its subject."""


class AckMismatch(ProtocolError):
    """A reply does not correlate to the command it answers.

    :ivar expected: (target, host) pair that was sent.
    :ivar received: (target, host) pair found in the reply.
    """

    def __init__(self, expected, received):
        self.expected = expected
        self.received = received
        message = "acknowledgement for %s on %s does not match request for %s on %s" % (
            received[0], received[1], expected[0], expected[1])
        super().__init__(message)
