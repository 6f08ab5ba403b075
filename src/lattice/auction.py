""" Placement auctions. An auction is broadcast to every host; a host that
    can run the requested actor or provider, and carries every label named
    in the constraints, answers with an :class:`AuctionResponse`. A host
    that cannot says nothing at all. The :class:`Auctioneer` only gathers
    the positive answers; picking a winner is up to the caller, and the
    first entry is the first host that answered.
"""

import logging

from .protocol import message
from .protocol.errors import DecodeError


log = logging.getLogger(__name__)


class Auctioneer:
    """ Run auctions over *transport*, collecting answers for *timeout*
        seconds.
    """

    def __init__(self, transport, namer, timeout):

        self.transport = transport
        self.namer = namer
        self.timeout = timeout


    def actor_auction(self, actor_id, revision=0, constraints=None):
        """ Return the list of :class:`AuctionResponse` instances received
            for an auction to run revision *revision* of *actor_id*.
        """

        request = message.ActorAuctionRequest(
            actor_id=actor_id,
            revision=int(revision),
            constraints=_constraints(constraints),
        )

        return self._run(self.namer.auction(), request)


    def provider_auction(self, provider_ref, binding_name='default', constraints=None):
        """ Same as :func:`actor_auction`, for a capability provider bound
            under *binding_name*.
        """

        request = message.ProviderAuctionRequest(
            provider_ref=provider_ref,
            binding_name=binding_name,
            constraints=_constraints(constraints),
        )

        return self._run(self.namer.provider_auction(), request)


    def _run(self, subject, request):

        responses = list()
        seen = set()

        subscription = self.transport.request_multi(subject, message.encode(request))

        try:
            for reply in subscription.timeout_iter(self.timeout):
                try:
                    response = message.decode(reply.data, message.AuctionResponse)
                except DecodeError as e:
                    # Not a positive answer; treat it as silence.
                    log.warning('ignoring malformed auction reply on %s: %s', subject, e)
                    continue

                if response.host_id in seen:
                    log.debug('duplicate auction reply from %s', response.host_id)
                    continue

                seen.add(response.host_id)
                responses.append(response)
        finally:
            subscription.close()

        log.debug('auction on %s: %d hosts answered', subject, len(responses))
        return responses


# end of class Auctioneer



def _constraints(constraints):

    if constraints is None:
        return dict()

    result = dict()
    for key, value in constraints.items():
        result[str(key)] = str(value)

    return result


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
