import time

from lattice import Client
from lattice.auction import Auctioneer
from lattice.protocol import message
from lattice.protocol.subject import Namer


def test_constrained_auction(bus, make_host, settings):

    a = make_host('Naaaa', labels={'arch': 'x86_64', 'region': 'east'})
    b = make_host('Nbbbb', labels={'arch': 'x86_64'})
    c = make_host('Ncccc', labels={'arch': 'aarch64'})

    auctioneer = Auctioneer(bus, Namer(), timeout=0.5)

    start = time.monotonic()
    results = auctioneer.actor_auction('Mxxxx', 3, {'arch': 'x86_64'})
    elapsed = time.monotonic() - start

    assert len(results) == 2
    assert set(response.host_id for response in results) == set(('Naaaa', 'Nbbbb'))
    assert 'Ncccc' not in [response.host_id for response in results]
    assert elapsed < 0.5 + 0.25

    # Every host heard the request, whether or not it answered.
    for host in (a, b, c):
        subject, data = host.received[-1]
        assert subject == 'wasmbus.control.auction.request'
        request = message.decode(data, message.ActorAuctionRequest)
        assert request == message.ActorAuctionRequest(actor_id='Mxxxx', revision=3, constraints={'arch': 'x86_64'})


def test_only_timely_answers_count(bus, make_host, settings):

    timeout = 0.3

    make_host('N1')
    make_host('N2', delay=0.05)
    make_host('N3', delay=0.1)
    make_host('N4', delay=timeout + 0.4)
    make_host('N5', delay=timeout + 0.4)

    start = time.monotonic()
    results = Auctioneer(bus, Namer(), timeout).actor_auction('M1')
    elapsed = time.monotonic() - start

    hosts = [response.host_id for response in results]
    assert sorted(hosts) == ['N1', 'N2', 'N3']
    assert len(set(hosts)) == len(hosts)
    assert elapsed < timeout + 0.25


def test_first_responder_first(bus, make_host, settings):

    make_host('Nslow', delay=0.1)
    make_host('Nfast')

    results = Client(settings, bus).perform_actor_auction('M1', 1)
    assert [response.host_id for response in results] == ['Nfast', 'Nslow']
    assert results[0].target == 'M1'


def test_duplicate_answers(bus, make_host, settings):

    host = make_host('N1')
    host.auction_copies = 3
    make_host('N2')

    results = Client(settings, bus).perform_actor_auction('M1')
    assert sorted(response.host_id for response in results) == ['N1', 'N2']


def test_malformed_answers_are_not_bids(bus, make_host, settings):

    make_host('N1')

    def heckle(received):
        bus.publish(received.reply, b'{"nope": true}')
        bus.publish(received.reply, b'not even json')

    bus.subscribe('wasmbus.control.auction.request', heckle)

    results = Client(settings, bus).perform_actor_auction('M1')
    assert [response.host_id for response in results] == ['N1']


def test_no_answers(bus, make_host, settings):

    make_host('N1', labels={'arch': 'aarch64'})
    assert Client(settings, bus).perform_actor_auction('M1', 0, {'arch': 'x86_64'}) == []


def test_provider_auction(bus, make_host, settings):

    host = make_host('N1', labels={'gpu': 'yes'})
    make_host('N2')

    client = Client(settings, bus)
    results = client.perform_provider_auction('wascc:http_server', 'web', {'gpu': 'yes'})

    assert results == [message.AuctionResponse(host_id='N1', target='wascc:http_server')]

    subject, data = host.received[-1]
    assert subject == 'wasmbus.control.provauction.request'

    request = message.decode(data, message.ProviderAuctionRequest)
    assert request.binding_name == 'web'
    assert request.constraints == {'gpu': 'yes'}


def test_constraint_values_are_strings(bus, make_host, settings):

    host = make_host('N1', labels={'cores': '8'})

    results = Client(settings, bus).perform_actor_auction('M1', 0, {'cores': 8})
    assert len(results) == 1

    request = message.decode(host.received[-1][1], message.ActorAuctionRequest)
    assert request.constraints == {'cores': '8'}


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
