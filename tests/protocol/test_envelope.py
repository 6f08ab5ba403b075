import datetime

import msgspec
import msgspec.structs
import pytest

import lattice
from lattice.protocol import envelope
from lattice.protocol import events
from lattice.protocol.envelope import Envelope
from lattice.protocol.errors import DecodeError


samples = (
    events.HostStarted(host='N1'),
    events.HostStopped(host='N1'),
    events.ActorStarting(actor='M1', host='N1'),
    events.ActorStarted(actor='M1', host='N1'),
    events.ActorStopped(actor='M1', host='N1'),
    events.ActorUpdating(actor='M1', host='N1'),
    events.ActorUpdateComplete(actor='M1', host='N1', success=False),
    events.ProviderLoaded(capid='wascc:http_server', instance_name='default', host='N1'),
    events.ProviderRemoved(capid='wascc:http_server', instance_name='default', host='N1'),
    events.ActorBindingCreated(actor='M1', capid='wascc:http_server', instance_name='default', host='N1'),
    events.ActorBindingRemoved(actor='M1', capid='wascc:http_server', instance_name='default', host='N1'),
    events.ActorBecameHealthy(actor='M1', host='N1'),
    events.ActorBecameUnhealthy(actor='M1', host='N1'),
)


def test_samples_cover_every_variant():
    assert set(type(event) for event in samples) == set(events.variants)


def test_round_trip():

    for event in samples:
        wrapped = Envelope.wrap(event)
        decoded = envelope.decode(envelope.encode(wrapped))

        assert decoded == wrapped
        assert decoded.unwrap() == event


def test_wrap_attributes():

    event = events.ActorStarted(actor='M1', host='N1')
    before = datetime.datetime.now(datetime.timezone.utc)
    wrapped = Envelope.wrap(event)

    assert wrapped.spec_version == '1.0'
    assert wrapped.type_version == '0.1'
    assert wrapped.event_type == 'wasmbus.events.actor_started'
    assert wrapped.source == 'https://wascc.dev/lattice/events'
    assert wrapped.content_type == 'application/json'
    assert wrapped.subject == 'M1'
    assert wrapped.time.tzinfo is not None
    assert wrapped.time >= before

    assert Envelope.wrap(event).event_id != wrapped.event_id


def test_wire_names():

    wrapped = Envelope.wrap(events.HostStarted(host='N1'))
    decoded = lattice.json.loads(envelope.encode(wrapped))

    expected = set(('specversion', 'type', 'typeversion', 'source', 'id', 'time', 'datacontenttype', 'data', 'subject'))
    assert set(decoded.keys()) == expected
    assert decoded['type'] == 'wasmbus.events.host_started'

    body = lattice.json.loads(decoded['data'])
    assert body == {'HostStarted': 'N1'}

    wrapped = Envelope.wrap(events.ActorUpdateComplete(actor='M1', host='N1', success=True))
    body = lattice.json.loads(envelope.encode(wrapped))
    assert lattice.json.loads(body['data']) == {'ActorUpdateComplete': {'actor': 'M1', 'host': 'N1', 'success': True}}


def test_host_event_bodies():

    assert events.decode(b'{"ActorStarted":{"actor":"M1","host":"N1"}}') == events.ActorStarted(actor='M1', host='N1')
    assert events.decode(b'{"HostStarted":"N1"}') == events.HostStarted(host='N1')

    body = b'{"ActorBindingCreated":{"host":"N1","actor":"M1","capid":"wascc:keyvalue","instance_name":"default"}}'
    event = events.decode(body)
    assert event == events.ActorBindingCreated(actor='M1', capid='wascc:keyvalue', instance_name='default', host='N1')
    assert Envelope.wrap(event).subject == 'M1.wascc:keyvalue.default'

    # The flat tagged shape is still accepted.
    assert events.decode(b'{"type": "actor_stopped", "actor": "M1", "host": "N1"}') == events.ActorStopped(actor='M1', host='N1')

    for event in samples:
        assert events.decode(events.encode(event)) == event


def test_unknown_variant_name():

    body = b'{"ActorTeleported":{"actor":"M1","host":"N1"}}'
    event = events.decode(body)

    assert isinstance(event, events.UnknownEvent)
    assert event.event_type() == 'wasmbus.events.actor_teleported'
    assert event.raw == {'ActorTeleported': {'actor': 'M1', 'host': 'N1'}}
    assert events.encode(event) == b'{"ActorTeleported":{"actor":"M1","host":"N1"}}'


def test_routing_subjects():

    expected = {
        events.HostStarted: 'N1',
        events.HostStopped: 'N1',
        events.ActorStarted: 'M1',
        events.ActorUpdateComplete: 'M1',
        events.ActorBecameUnhealthy: 'M1',
        events.ProviderLoaded: 'wascc:http_server.default',
        events.ProviderRemoved: 'wascc:http_server.default',
        events.ActorBindingCreated: 'M1.wascc:http_server.default',
        events.ActorBindingRemoved: 'M1.wascc:http_server.default',
    }

    for event in samples:
        if type(event) in expected:
            assert Envelope.wrap(event).subject == expected[type(event)]


def test_rendering():

    assert str(events.ActorStarted(actor='M1', host='N1')) == '[N1] Actor M1 started'
    assert str(events.HostStopped(host='N1')) == '[N1] Host stopped'
    assert 'failed' in str(events.ActorUpdateComplete(actor='M1', host='N1', success=False))


def test_unknown_event():

    body = b'{"type": "actor_teleported", "actor": "M1", "host": "N1"}'
    event = events.decode(body)

    assert isinstance(event, events.UnknownEvent)
    assert event.event_type() == 'wasmbus.events.actor_teleported'
    assert event.raw['actor'] == 'M1'

    wrapped = Envelope.wrap(event)
    assert wrapped.subject is None
    assert wrapped.event_type == 'wasmbus.events.actor_teleported'

    encoded = envelope.encode(wrapped)
    assert 'subject' not in lattice.json.loads(encoded)
    assert envelope.decode(encoded).unwrap() == event


def test_unwrap_rejects():

    wrapped = Envelope.wrap(events.ActorStarted(actor='M1', host='N1'))

    with pytest.raises(DecodeError):
        msgspec.structs.replace(wrapped, content_type='text/plain').unwrap()

    with pytest.raises(DecodeError):
        msgspec.structs.replace(wrapped, spec_version='2.0').unwrap()

    # A minor revision of the envelope format is still readable.
    assert msgspec.structs.replace(wrapped, spec_version='1.1').unwrap() == events.ActorStarted(actor='M1', host='N1')

    for data in ('not json', '[1, 2]', '{"actor": "M1"}', '{"type": "actor_started", "actor": 5, "host": "N1"}'):
        with pytest.raises(DecodeError):
            msgspec.structs.replace(wrapped, data=data).unwrap()


def test_decode_rejects():

    for data in (b'', b'garbage', b'{"specversion": "1.0"}', b'[]'):
        with pytest.raises(DecodeError):
            envelope.decode(data)

    bodies = (
        b'{"type": "actor_update_complete", "actor": "M1", "host": "N1"}',
        b'{"ActorUpdateComplete":{"actor":"M1","host":"N1"}}',
        b'{"HostStarted":{"host":"N1"}}',
        b'{"ActorStarted":"N1"}',
        b'{"actor": "M1", "host": "N1"}',
        b'{"type": 7}',
    )

    for data in bodies:
        with pytest.raises(DecodeError):
            events.decode(data)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
