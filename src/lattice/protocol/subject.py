""" Construction of bus subjects. A subject is a dot-separated sequence of
    segments: an optional namespace, the protocol segment, a root, and any
    number of further parts. Segments never contain a dot, so distinct
    (root, parts) sequences always produce distinct subjects.
"""

from . import fields


# Characters that either separate segments or carry wildcard meaning on
# one broker or another (NATS uses * and >, AMQP topic exchanges * and #).

_forbidden = set('.*>#')


def validate(segment):
    """ Return the *segment* as a string if it is usable as one element of a
        subject, otherwise raise :class:`ValueError`.
    """

    segment = str(segment)

    if segment == '':
        raise ValueError('subject segments cannot be empty')

    for character in segment:
        if character in _forbidden or character.isspace():
            raise ValueError('invalid character %r in subject segment %r' % (character, segment))

    return segment


class Namer:
    """ Build subjects for a single lattice. If a *namespace* is provided it
        prefixes every subject; a namespace may itself be dotted, in which
        case each of its segments is validated individually.
    """

    def __init__(self, namespace=None):

        if namespace == '':
            namespace = None

        if namespace is not None:
            for segment in str(namespace).split('.'):
                validate(segment)
            namespace = str(namespace)

        self.namespace = namespace


    def __repr__(self):
        return 'Namer(namespace=%r)' % (self.namespace,)


    def subject(self, root, *parts):
        """ Return the subject for *root* followed by *parts*, for example
            ``wasmbus.inventory.hosts``, or ``prod.wasmbus.inventory.hosts``
            with a namespace of ``prod``.
        """

        segments = [fields.PROTOCOL, validate(root)]

        for part in parts:
            segments.append(validate(part))

        if self.namespace is not None:
            segments.insert(0, self.namespace)

        return '.'.join(segments)


    def inventory(self, kind):
        if kind not in fields.INVENTORY_KINDS:
            raise ValueError('unknown inventory kind: ' + repr(kind))

        return self.subject(fields.INVENTORY, kind)


    def auction(self):
        return self.subject(fields.CONTROL, *fields.AUCTION)


    def provider_auction(self):
        return self.subject(fields.CONTROL, *fields.PROVIDER_AUCTION)


    def control(self, host, entity, action):
        """ Subjects for addressed commands embed the *host* identifier as a
            segment, for example ``wasmbus.control.Nxxxx.actor.launch``; only
            that host subscribes to it.
        """

        return self.subject(fields.CONTROL, host, entity, action)


    def events(self):
        return self.subject(fields.EVENTS)


# end of class Namer


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
