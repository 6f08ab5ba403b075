""" Command line interface, installed as ``latticectl``. It interacts with a
    lattice the same way a lattice host would, and uses the same environment
    variables to find the bus by default.
"""

import argparse
import logging
import sys

from . import config
from . import json
from . import log as logsetup
from .client import Client
from .protocol import fields
from .protocol import message
from .protocol.errors import ProtocolError
from .protocol.events import UnknownEvent
from .transport import TransportError


log = logging.getLogger(__name__)

entity_types = {
    'hosts': fields.HOSTS,
    'actors': fields.ACTORS,
    'bindings': fields.BINDINGS,
    'capabilities': fields.CAPABILITIES,
    'caps': fields.CAPABILITIES,
}


class UsageError(Exception):
    pass


class ArgumentParser(argparse.ArgumentParser):
    """ Report usage errors like any other error, instead of exiting with
        argparse's own status code.
    """

    def error(self, message):
        raise UsageError(message)


def constraint(text):
    """ Parse one ``key=value`` constraint. """

    key, sep, value = text.partition('=')
    key = key.strip()

    if sep == '' or key == '':
        raise argparse.ArgumentTypeError('constraints must look like key=value, not ' + repr(text))

    return key, value.strip()


def build_parser():

    parser = ArgumentParser(
        prog='latticectl',
        description='A command line utility for interacting with a lattice.',
    )

    parser.add_argument('-u', '--url', default=None,
        help='address of the nearest broker (env: %s, default: %s)' % (config.URL, config.default_url))
    parser.add_argument('-c', '--creds', default=None,
        help='credentials file used to authenticate against the broker (env: %s)' % (config.CREDS,))
    parser.add_argument('-t', '--timeout', default=None,
        help='lattice request timeout period, in milliseconds (env: %s, default: %d)' % (config.TIMEOUT, config.default_timeout))
    parser.add_argument('--launch-timeout', default=None, dest='launch_timeout',
        help='launch acknowledgement timeout, in milliseconds (env: %s, default: %d)' % (config.LAUNCH_TIMEOUT, config.default_launch_timeout))
    parser.add_argument('-n', '--namespace', default=None,
        help='subject namespace of the lattice (env: %s)' % (config.NAMESPACE,))
    parser.add_argument('--transport', default=None, choices=config.transports,
        help='bus transport (env: %s, default: %s)' % (config.TRANSPORT, config.default_transport))
    parser.add_argument('-j', '--json', action='store_true',
        help='render the output in JSON')
    parser.add_argument('-v', '--verbose', action='count', default=0,
        help='log more detail; repeat for debug output')

    commands = parser.add_subparsers(dest='command', metavar='command')
    commands.required = True

    listing = commands.add_parser('list', help='list entities of various types within the lattice')
    listing.add_argument('entity_type',
        help='the entity type to list (actors, bindings, capabilities (caps), hosts)')

    commands.add_parser('watch', help='watch events on the lattice')

    start = commands.add_parser('start', help='hold an auction for an actor and launch it on the first host to answer')
    start.add_argument('actor', help='actor identifier')
    start.add_argument('revision', type=int, help='actor revision')
    start.add_argument('-c', '--constraint', dest='constraints', action='append', type=constraint, default=[],
        metavar='KEY=VALUE', help='host label that must match; may be repeated')

    stop = commands.add_parser('stop', help='tell a host to stop an actor')
    stop.add_argument('actor', help='actor identifier')
    stop.add_argument('host', help='host identifier')

    return parser


def render_json(value, out):
    out.write(json.dumps(message.to_builtins(value)).decode())
    out.write('\n')


def render_hosts(client, as_json, out):

    hosts = client.get_hosts()

    if as_json:
        render_json(hosts, out)
        return

    for host in hosts:
        labels = ','.join(host.labels.keys())
        out.write('[%s] Uptime %ds, Labels: %s\n' % (host.id, host.uptime_ms // 1000, labels))


def render_actors(client, as_json, out):

    actors = client.get_actors()

    if as_json:
        render_json(actors, out)
        return

    for host, claims in actors.items():
        out.write('\nHost %s:\n' % (host,))
        for actor in claims:
            metadata = actor.metadata
            if metadata is None:
                version = '???'
                revision = 0
            else:
                version = metadata.ver if metadata.ver is not None else '???'
                revision = metadata.rev if metadata.rev is not None else 0

            out.write('\t%s - %s  v%s (%d)\n' % (actor.subject, actor.name(), version, revision))


def render_bindings(client, as_json, out):

    bindings = client.get_bindings()

    if as_json:
        render_json(bindings, out)
        return

    for host, records in bindings.items():
        out.write('Host %s\n' % (host,))
        for binding in records:
            values = (binding.actor, binding.capability_id, binding.binding_name, len(binding.configuration))
            out.write('\t%s -> %s,%s - %d values\n' % values)


def render_capabilities(client, as_json, out):

    capabilities = client.get_capabilities()

    if as_json:
        render_json(capabilities, out)
        return

    for host, records in capabilities.items():
        out.write('%s\n' % (host,))
        for capability in records:
            descriptor = capability.descriptor
            values = (descriptor.id, capability.binding_name, len(descriptor.supported_operations))
            out.write('\t%s,%s - Total Operations %d\n' % values)


renderers = {
    fields.HOSTS: render_hosts,
    fields.ACTORS: render_actors,
    fields.BINDINGS: render_bindings,
    fields.CAPABILITIES: render_capabilities,
}


def list_entities(client, arguments, out):

    entity_type = arguments.entity_type.lower().strip()

    try:
        kind = entity_types[entity_type]
    except KeyError:
        raise UsageError('unknown entity type. Valid types are: hosts, actors, capabilities, bindings')

    renderers[kind](client, arguments.json, out)


def watch_events(client, arguments, out):

    if not arguments.json:
        out.write('Watching lattice events, Ctrl+C to abort...\n')
        out.flush()

    channel = client.watch_events()

    try:
        for event in channel:
            if not arguments.json:
                out.write('%s\n' % (event,))
            elif isinstance(event, UnknownEvent):
                render_json(event.raw, out)
            else:
                render_json(event, out)
            out.flush()
    except KeyboardInterrupt:
        pass
    finally:
        channel.close()


def start_actor(client, arguments, out):

    constraints = dict(arguments.constraints)
    responses = client.perform_actor_auction(arguments.actor, arguments.revision, constraints)

    if len(responses) == 0:
        raise UsageError('no hosts answered the auction for %s' % (arguments.actor,))

    host = responses[0].host_id
    ack = client.launch_actor_on_host(arguments.actor, arguments.revision, host)

    if arguments.json:
        render_json(ack, out)
    else:
        out.write('Actor %s launched on host %s\n' % (ack.actor_id, ack.host))


def stop_actor(client, arguments, out):

    client.terminate_actor(arguments.actor, arguments.host)

    if arguments.json:
        render_json({'actor_id': arguments.actor, 'host': arguments.host}, out)
    else:
        out.write('Termination command sent for actor %s on host %s\n' % (arguments.actor, arguments.host))


handlers = {
    'list': list_entities,
    'watch': watch_events,
    'start': start_actor,
    'stop': stop_actor,
}


def main(argv=None, out=None):
    """ Entry point for ``latticectl``. Returns the process exit status:
        zero on success, one on any error.
    """

    if out is None:
        out = sys.stdout

    parser = build_parser()

    try:
        arguments = parser.parse_args(argv)
    except UsageError as e:
        sys.stderr.write('latticectl error: %s\n' % (e,))
        return 1

    if arguments.verbose >= 2:
        level = 'DEBUG'
    elif arguments.verbose == 1:
        level = 'INFO'
    else:
        level = None

    logsetup.setup(level, json_lines=arguments.json)

    try:
        settings = config.Settings.from_environment(
            url=arguments.url,
            creds=arguments.creds,
            timeout=arguments.timeout,
            launch_timeout=arguments.launch_timeout,
            namespace=arguments.namespace,
            transport=arguments.transport,
        )

        with Client(settings) as client:
            handlers[arguments.command](client, arguments, out)

    except (UsageError, ProtocolError, TransportError, ValueError, OSError) as e:
        log.debug('%s failed', arguments.command, exc_info=True)
        sys.stderr.write('latticectl error: %s\n' % (e,))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
