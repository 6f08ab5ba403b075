import itertools
import threading

import pytest

from lattice import config
from lattice.protocol import fields
from lattice.protocol import message
from lattice.protocol.subject import Namer
from lattice.transport import local


hub_names = itertools.count()


class SimulatedHost:
    """ Stand-in for a lattice host: answers inventory probes, answers
        auctions whose constraints its labels satisfy, and acknowledges
        launch commands addressed to it. Every request it hears is recorded
        in :attr:`received` as (subject, raw payload) pairs.

        A non-zero *delay* postpones every reply by that many seconds.
    """

    def __init__(self, transport, host_id, labels=None, delay=0, namespace=None):

        self.transport = transport
        self.host_id = host_id
        self.labels = dict() if labels is None else labels
        self.delay = delay
        self.namer = Namer(namespace)

        self.actors = list()
        self.bindings = list()
        self.capabilities = list()

        # Additional raw replies, per inventory kind, sent after the real one.
        self.extra = dict()

        self.auction_copies = 1
        self.ack_host = host_id
        self.ack_target = None
        self.received = list()

        self.subscriptions = list()

        for kind in fields.INVENTORY_KINDS:
            self.listen(self.namer.inventory(kind), self.on_inventory)

        self.listen(self.namer.auction(), self.on_actor_auction)
        self.listen(self.namer.provider_auction(), self.on_provider_auction)

        for entity in (fields.ACTOR, fields.PROVIDER):
            self.listen(self.namer.control(host_id, entity, fields.LAUNCH), self.on_launch)
            self.listen(self.namer.control(host_id, entity, fields.TERMINATE), self.record)


    def listen(self, subject, callback):
        subscription = self.transport.subscribe(subject, callback)
        self.subscriptions.append(subscription)


    def close(self):
        for subscription in self.subscriptions:
            subscription.close()


    def record(self, received):
        self.received.append((received.subject, received.data))


    def subjects(self):
        return [subject for subject, data in self.received]


    def reply(self, received, payload):

        if received.reply is None:
            return

        if self.delay == 0:
            self.transport.publish(received.reply, payload)
            return

        def send():
            if self.transport.is_open:
                self.transport.publish(received.reply, payload)

        timer = threading.Timer(self.delay, send)
        timer.daemon = True
        timer.start()


    def on_inventory(self, received):

        self.record(received)
        kind = received.subject.split('.')[-1]

        if kind == fields.HOSTS:
            profile = message.HostProfile(id=self.host_id, uptime_ms=5000, labels=self.labels)
            response = message.HostInventory(profile=profile)
        elif kind == fields.ACTORS:
            response = message.ActorInventory(host=self.host_id, actors=self.actors)
        elif kind == fields.BINDINGS:
            response = message.BindingInventory(host=self.host_id, bindings=self.bindings)
        else:
            response = message.CapabilityInventory(host=self.host_id, capabilities=self.capabilities)

        self.reply(received, message.encode_inventory(response))

        for payload in self.extra.get(kind, ()):
            self.reply(received, payload)


    def satisfies(self, constraints):

        for key, value in constraints.items():
            if self.labels.get(key) != value:
                return False

        return True


    def on_actor_auction(self, received):

        self.record(received)
        request = message.decode(received.data, message.ActorAuctionRequest)

        if self.satisfies(request.constraints):
            response = message.AuctionResponse(host_id=self.host_id, target=request.actor_id)
            for copy in range(self.auction_copies):
                self.reply(received, message.encode(response))


    def on_provider_auction(self, received):

        self.record(received)
        request = message.decode(received.data, message.ProviderAuctionRequest)

        if self.satisfies(request.constraints):
            response = message.AuctionResponse(host_id=self.host_id, target=request.provider_ref)
            self.reply(received, message.encode(response))


    def on_launch(self, received):

        self.record(received)

        if received.subject.endswith('.actor.launch'):
            command = message.decode(received.data, message.LaunchCommand)
            target = command.actor_id if self.ack_target is None else self.ack_target
            ack = message.LaunchAck(actor_id=target, host=self.ack_host)
        else:
            command = message.decode(received.data, message.ProviderLaunchCommand)
            target = command.provider_ref if self.ack_target is None else self.ack_target
            ack = message.ProviderLaunchAck(provider_ref=target, host=self.ack_host)

        self.reply(received, message.encode(ack))


# end of class SimulatedHost



@pytest.fixture
def hub_name():
    return 'test-hub-%d' % (next(hub_names),)


@pytest.fixture
def hub(hub_name):
    return local.hub(hub_name)


@pytest.fixture
def bus(hub):
    """ A client-side connection to the in-process bus. """

    transport = local.LocalTransport(hub)
    transport.open()

    yield transport

    transport.close()


@pytest.fixture
def make_host(hub):
    """ Factory for :class:`SimulatedHost` instances attached to the same
        in-process bus as the :func:`bus` fixture.
    """

    transports = list()

    def factory(host_id, labels=None, delay=0, namespace=None):
        transport = local.LocalTransport(hub)
        transport.open()
        transports.append(transport)
        return SimulatedHost(transport, host_id, labels, delay, namespace)

    yield factory

    for transport in transports:
        transport.close()


@pytest.fixture
def simulated_host():
    """ The :class:`SimulatedHost` class, for attaching hosts to transports
        other than the in-process bus.
    """

    return SimulatedHost


@pytest.fixture
def settings():
    """ Client settings with short timeouts, independent of the process
        environment.
    """

    return config.Settings.from_environment(environ={}, timeout=300, launch_timeout=200, transport='local')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
