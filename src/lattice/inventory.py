""" Inventory probes. A probe is one fan-out request with no addressed
    host: every host on the bus that hears it answers for itself, and the
    :class:`Prober` gathers whatever arrives before the call timeout into a
    dictionary keyed by host identifier. A host that stays silent is simply
    not in the result.
"""

import logging

from .protocol import fields
from .protocol import message
from .protocol.errors import DecodeError


log = logging.getLogger(__name__)


class Prober:
    """ Issue inventory probes over *transport*, naming subjects with
        *namer*, collecting replies for *timeout* seconds.

        A reply that does not decode aborts the whole probe with
        :class:`lattice.protocol.errors.DecodeError` when *strict* is True,
        the default. Otherwise the reply is logged, counted in
        :attr:`skipped`, and the probe carries on.

        :ivar skipped: Number of malformed replies ignored so far.
    """

    def __init__(self, transport, namer, timeout, strict=True):

        self.transport = transport
        self.namer = namer
        self.timeout = timeout
        self.strict = strict
        self.skipped = 0


    def probe(self, kind):
        """ Return a dictionary mapping each replying host to the list of
            records it reported for inventory *kind*. Several replies from
            the same host are concatenated, in arrival order.
        """

        subject = self.namer.inventory(kind)
        results = dict()

        subscription = self.transport.request_multi(subject, b'')

        try:
            for reply in subscription.timeout_iter(self.timeout):
                try:
                    response = message.decode_inventory(reply.data)
                except DecodeError:
                    if self.strict:
                        raise

                    self.skipped += 1
                    log.warning('skipping malformed %s inventory reply on %s', kind, subject)
                    continue

                if response.kind != kind:
                    # A valid reply, just not to this question.
                    continue

                try:
                    records = results[response.host_id]
                except KeyError:
                    records = list()
                    results[response.host_id] = records

                records.extend(response.records)
        finally:
            subscription.close()

        log.debug('%s probe on %s: %d hosts replied', kind, subject, len(results))
        return results


    def hosts(self):
        return self.probe(fields.HOSTS)


    def actors(self):
        return self.probe(fields.ACTORS)


    def bindings(self):
        return self.probe(fields.BINDINGS)


    def capabilities(self):
        return self.probe(fields.CAPABILITIES)


# end of class Prober


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
