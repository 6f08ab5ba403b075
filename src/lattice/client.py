""" The :class:`Client` is the one object most applications need: it owns a
    transport connection, the subject namer, and the timeouts, and exposes
    every control-plane operation as a method.
"""

import logging

from . import config
from . import transport as transports
from .auction import Auctioneer
from .command import Dispatcher
from .inventory import Prober
from .protocol.subject import Namer
from .watch import EventChannel, Watcher


log = logging.getLogger(__name__)


class Client:
    """ Lattice client. With no arguments, connection and timing settings
        are taken from the environment (see :mod:`lattice.config`); an
        explicit *settings* instance replaces the environment. An
        already-open *transport* may be supplied instead of connecting to
        the broker named in the settings; the client takes ownership of it
        and closes it in :func:`close`.

        The call timeout bounds every fan-out collection (probes and
        auctions); the launch timeout bounds the wait for an addressed host
        to acknowledge a launch.
    """

    def __init__(self, settings=None, transport=None, strict=True):

        if settings is None:
            settings = config.Settings.from_environment()

        self.settings = settings
        self.namer = Namer(settings.namespace)

        if transport is None:
            transport = transports.connect(settings.url, settings.creds, settings.transport)
            log.info('connected to %s via %s', settings.url, settings.transport)

        self.transport = transport
        self.watchers = list()

        self.prober = Prober(transport, self.namer, settings.timeout, strict)
        self.auctioneer = Auctioneer(transport, self.namer, settings.timeout)
        self.dispatcher = Dispatcher(transport, self.namer, settings.launch_timeout)


    def __repr__(self):
        return 'Client(%r)' % (self.settings,)


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.close()


    def close(self):
        """ Stop any active watchers and close the transport. """

        for watcher in self.watchers:
            watcher.stop()

        self.watchers = list()
        self.transport.close()


    # Inventory.

    def probe(self, kind):
        return self.prober.probe(kind)


    def get_hosts(self):
        """ Return a flat list of :class:`HostProfile` instances, one per
            host that answered.
        """

        hosts = list()
        for profiles in self.prober.hosts().values():
            hosts.extend(profiles)

        return hosts


    def get_actors(self):
        return self.prober.actors()


    def get_bindings(self):
        return self.prober.bindings()


    def get_capabilities(self):
        return self.prober.capabilities()


    # Auctions.

    def perform_actor_auction(self, actor_id, revision=0, constraints=None):
        return self.auctioneer.actor_auction(actor_id, revision, constraints)


    def perform_provider_auction(self, provider_ref, binding_name='default', constraints=None):
        return self.auctioneer.provider_auction(provider_ref, binding_name, constraints)


    # Commands.

    def launch_actor_on_host(self, actor_id, revision, host):
        return self.dispatcher.launch_actor(actor_id, revision, host)


    def terminate_actor(self, actor_id, host):
        self.dispatcher.terminate_actor(actor_id, host)


    def launch_provider_on_host(self, provider_ref, binding_name, host, revision=None):
        return self.dispatcher.launch_provider(provider_ref, binding_name, host, revision)


    def terminate_provider(self, provider_ref, binding_name, host):
        self.dispatcher.terminate_provider(provider_ref, binding_name, host)


    # Events.

    def watch_events(self, channel=None, maxsize=256):
        """ Start watching the lifecycle event feed; return the
            :class:`EventChannel` the events arrive on. Closing the channel
            ends the watch.
        """

        if channel is None:
            channel = EventChannel(maxsize)

        watcher = Watcher(self.transport, self.namer.events(), channel)
        watcher.start()
        self.watchers.append(watcher)

        return channel


# end of class Client



def connect(**settings):
    """ Return a new :class:`Client`. Any keyword *settings*, for example
        *url* or *timeout* in milliseconds, override the environment.
    """

    settings = config.Settings.from_environment(**settings)
    return Client(settings)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
