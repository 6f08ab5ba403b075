""" Subscription handling shared by every transport. A transport's I/O thread
    hands each arriving :class:`Message` to :func:`Subscription.deliver`,
    which never blocks; consumers pull from the subscription at their own
    pace, with or without a deadline.
"""

import logging
import queue
import time


log = logging.getLogger(__name__)


class Subscription:
    """ One active interest in a single *subject*. Messages are queued in
        arrival order until consumed, unless a *callback* is registered, in
        which case the callback is invoked directly from the delivering
        thread and should be as lightweight as possible. Closing the
        subscription detaches it from the transport; anything still queued
        can be drained, but no further messages arrive.
    """

    def __init__(self, transport, subject, callback=None):

        if callback is not None and not callable(callback):
            raise TypeError('callback must be callable')

        self.transport = transport
        self.subject = subject
        self.callback = callback
        self.closed = False
        self.delivered = 0

        self.queue = queue.SimpleQueue()


    def __repr__(self):
        return 'Subscription(%r, delivered=%d, closed=%r)' % (self.subject, self.delivered, self.closed)


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.close()


    def deliver(self, message):
        """ Called by the transport, typically from its I/O thread. A
            closed subscription silently discards late arrivals.
        """

        if self.closed:
            return

        self.delivered += 1

        if self.callback is None:
            self.queue.put(message)
            return

        try:
            self.callback(message)
        except Exception:
            log.exception('callback for %s failed', self.subject)


    def next(self, timeout=None):
        """ Return the next message, waiting up to *timeout* seconds; None
            if nothing arrived in time. A *timeout* of None blocks until a
            message arrives.
        """

        if timeout is not None and timeout <= 0:
            try:
                return self.queue.get(block=False)
            except queue.Empty:
                return None

        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None


    def timeout_iter(self, timeout):
        """ Yield every message arriving within *timeout* seconds of this
            call. The deadline is absolute: a steady trickle of replies
            cannot extend the collection window.
        """

        deadline = time.monotonic() + timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break

            message = self.next(remaining)
            if message is None:
                break

            yield message


    def close(self):
        if self.closed:
            return

        self.closed = True
        self.transport.unsubscribe(self)


# end of class Subscription


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
