import pytest

import lattice
from lattice.protocol import message
from lattice.protocol.errors import AckMismatch, DecodeError


def test_inventory_replies():

    data = b'{"type": "host", "profile": {"id": "N1", "uptime_ms": 12000, "labels": {"arch": "x86_64"}}}'
    response = message.decode(data, message.InventoryResponse)

    assert isinstance(response, message.HostInventory)
    assert response.kind == 'hosts'
    assert response.host_id == 'N1'
    assert response.records == [message.HostProfile(id='N1', uptime_ms=12000, labels={'arch': 'x86_64'})]

    data = b'{"type": "bindings", "host": "N2", "bindings": [{"actor": "M1", "capability_id": "wascc:keyvalue"}]}'
    response = message.decode(data, message.InventoryResponse)

    assert isinstance(response, message.BindingInventory)
    assert response.host_id == 'N2'
    assert response.records[0].binding_name == 'default'
    assert response.records[0].configuration == {}


def test_host_inventory_replies():

    response = message.decode_inventory(b'{"Host":"N1"}')
    assert isinstance(response, message.HostInventory)
    assert response.host_id == 'N1'
    assert response.records == [message.HostProfile(id='N1')]

    response = message.decode_inventory(b'{"Actors":{"host":"N1","actors":[]}}')
    assert isinstance(response, message.ActorInventory)
    assert response.host_id == 'N1'
    assert response.records == []

    data = b'{"Capabilities":{"host":"N2","capabilities":[{"binding_name":"default","descriptor":{"id":"wascc:keyvalue","name":"Redis","version":"0.9","revision":2,"supported_operations":["Get","Set"]}}]}}'
    response = message.decode_inventory(data)
    assert response.kind == 'capabilities'
    assert response.records[0].descriptor.supported_operations == ['Get', 'Set']

    # The flat tagged shape decodes the same way.
    data = b'{"type": "bindings", "host": "N2", "bindings": []}'
    assert message.decode_inventory(data) == message.BindingInventory(host='N2')


def test_inventory_encoding():

    profile = message.HostProfile(id='N1', uptime_ms=5000, labels={'arch': 'x86_64'})
    encoded = lattice.json.loads(message.encode_inventory(message.HostInventory(profile=profile)))
    assert encoded == {'Host': {'id': 'N1', 'uptime_ms': 5000, 'labels': {'arch': 'x86_64'}}}

    response = message.BindingInventory(host='N2', bindings=[message.Binding(actor='M1', capability_id='wascc:keyvalue')])
    encoded = lattice.json.loads(message.encode_inventory(response))
    assert list(encoded.keys()) == ['Bindings']
    assert encoded['Bindings']['host'] == 'N2'
    assert message.decode_inventory(message.encode_inventory(response)) == response


def test_actor_claims():

    data = b'''{"type": "actors", "host": "N1", "actors": [
        {"sub": "Mxxxx", "iss": "Axxxx", "iat": 1600000000,
         "wascap": {"name": "Echo", "ver": "0.2.1", "rev": 3, "caps": ["wascc:http_server"], "prov": false}},
        {"sub": "Myyyy"}
    ]}'''

    response = message.decode(data, message.InventoryResponse)
    first, second = response.records

    assert first.subject == 'Mxxxx'
    assert first.issuer == 'Axxxx'
    assert first.name() == 'Echo'
    assert first.metadata.rev == 3
    assert first.metadata.caps == ['wascc:http_server']

    # Without metadata the subject stands in for the name.
    assert second.name() == 'Myyyy'
    assert second.metadata is None

    encoded = lattice.json.loads(message.encode(first))
    assert encoded['sub'] == 'Mxxxx'
    assert encoded['wascap']['name'] == 'Echo'


def test_auction_messages():

    request = message.ActorAuctionRequest(actor_id='Mxxxx', revision=3, constraints={'arch': 'x86_64'})
    assert lattice.json.loads(message.encode(request)) == {'actor_id': 'Mxxxx', 'revision': 3, 'constraints': {'arch': 'x86_64'}}

    response = message.decode(b'{"host_id": "N1"}', message.AuctionResponse)
    assert response.host_id == 'N1'
    assert response.target is None
    assert lattice.json.loads(message.encode(response)) == {'host_id': 'N1'}


def test_provider_launch_omits_revision():

    command = message.ProviderLaunchCommand(provider_ref='wascc:http_server', binding_name='default')
    assert 'revision' not in lattice.json.loads(message.encode(command))


def test_decode_errors():

    for data in (b'', b'nope', b'{"type": "widgets", "host": "N1"}', b'{"type": "host"}'):
        with pytest.raises(DecodeError):
            message.decode(data, message.InventoryResponse)

    with pytest.raises(DecodeError):
        message.decode(b'{"actor_id": "M1"}', message.LaunchAck)

    bad = (b'nope', b'[]', b'{"Widgets":{"host":"N1"}}', b'{"Host":5}', b'{"Actors":"N1"}', b'{"type": "host"}', b'{"host": "N1", "actors": []}')
    for data in bad:
        with pytest.raises(DecodeError):
            message.decode_inventory(data)


def test_ack_mismatch_message():

    error = AckMismatch(('M1', 'N1'), ('M1', 'N9'))
    assert error.expected == ('M1', 'N1')
    assert error.received == ('M1', 'N9')
    assert 'N9' in str(error)
    assert 'N1' in str(error)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
