""" Addressed commands. Every command subject embeds the identifier of the
    one host it is meant for, so only that host hears it. A launch waits for
    that host to acknowledge; a terminate does not wait for anything, the
    event feed is where the actual shutdown becomes visible.
"""

import logging

from .protocol import fields
from .protocol import message
from .protocol.errors import AckMismatch


log = logging.getLogger(__name__)


class Dispatcher:
    """ Send commands over *transport*. Launch commands wait up to
        *timeout* seconds for the addressed host to reply; there is no
        retry, a missing reply raises
        :class:`lattice.transport.TransportTimeout`.
    """

    def __init__(self, transport, namer, timeout):

        self.transport = transport
        self.namer = namer
        self.timeout = timeout


    def launch_actor(self, actor_id, revision, host):
        """ Ask *host* to start revision *revision* of *actor_id*. Returns the
            :class:`LaunchAck`; raises :class:`AckMismatch` if the reply is
            for some other actor, or came from some other host.
        """

        subject = self.namer.control(host, fields.ACTOR, fields.LAUNCH)
        command = message.LaunchCommand(actor_id=actor_id, revision=int(revision))

        return self._launch(subject, command, message.LaunchAck, actor_id, host)


    def launch_provider(self, provider_ref, binding_name, host, revision=None):

        subject = self.namer.control(host, fields.PROVIDER, fields.LAUNCH)
        command = message.ProviderLaunchCommand(
            provider_ref=provider_ref,
            binding_name=binding_name,
            revision=revision,
        )

        return self._launch(subject, command, message.ProviderLaunchAck, provider_ref, host)


    def _launch(self, subject, command, ack_type, target, host):

        reply = self.transport.request(subject, message.encode(command), self.timeout)
        ack = message.decode(reply.data, ack_type)

        if ack.target != target or ack.host != host:
            raise AckMismatch((target, host), (ack.target, ack.host))

        log.debug('%s acknowledged %s', host, target)
        return ack


    def terminate_actor(self, actor_id, host):
        """ Tell *host* to stop *actor_id*. Returns as soon as the command
            is published.
        """

        subject = self.namer.control(host, fields.ACTOR, fields.TERMINATE)
        command = message.TerminateCommand(actor_id=actor_id)
        self.transport.publish(subject, message.encode(command))


    def terminate_provider(self, provider_ref, binding_name, host):

        subject = self.namer.control(host, fields.PROVIDER, fields.TERMINATE)
        command = message.ProviderTerminateCommand(provider_ref=provider_ref, binding_name=binding_name)
        self.transport.publish(subject, message.encode(command))


# end of class Dispatcher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
