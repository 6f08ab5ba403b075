""" Lifecycle event watching. A :class:`Watcher` holds one subscription to
    the event feed for as long as its consumer is interested; a background
    thread decodes each envelope as it arrives and hands the event to an
    :class:`EventChannel`, which the consumer reads at its own pace.

    The channel is bounded. When it is full the oldest unread event is
    discarded to make room, so a stalled consumer costs it history, never
    the watcher its subscription.
"""

import collections
import logging
import threading
import time

from .protocol import envelope
from .protocol.errors import DecodeError


log = logging.getLogger(__name__)


class EventChannel:
    """ Bounded, thread-safe hand-off from a watcher to its consumer. At
        most *maxsize* events are held; :func:`put` never blocks.

        :ivar dropped: Number of events discarded to make room.
    """

    def __init__(self, maxsize=256):

        maxsize = int(maxsize)
        if maxsize < 1:
            raise ValueError('maxsize must be at least 1, not ' + repr(maxsize))

        self.maxsize = maxsize
        self.dropped = 0
        self.closed = False

        self._events = collections.deque()
        self._condition = threading.Condition()


    def __repr__(self):
        return 'EventChannel(%d/%d, dropped=%d, closed=%r)' % (len(self), self.maxsize, self.dropped, self.closed)


    def __len__(self):
        with self._condition:
            return len(self._events)


    def __iter__(self):
        """ Yield events as they arrive, until the channel is closed and
            everything already queued has been consumed.
        """

        while True:
            event = self.get()
            if event is None:
                return
            yield event


    def put(self, event):
        """ Queue *event*, evicting the oldest queued event if the channel is
            full. Returns False, discarding *event*, if the channel is closed.
        """

        with self._condition:
            if self.closed:
                return False

            if len(self._events) >= self.maxsize:
                self._events.popleft()
                self.dropped += 1

            self._events.append(event)
            self._condition.notify()

        return True


    def get(self, timeout=None):
        """ Return the next event, waiting up to *timeout* seconds. Returns
            None on timeout, or once the channel is closed and empty. A
            *timeout* of None waits indefinitely.
        """

        if timeout is not None:
            deadline = time.monotonic() + timeout

        with self._condition:
            while len(self._events) == 0:
                if self.closed:
                    return None

                if timeout is None:
                    self._condition.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._condition.wait(remaining)

            return self._events.popleft()


    def close(self):
        """ Signal the watcher to stop. Queued events remain readable. """

        with self._condition:
            self.closed = True
            self._condition.notify_all()


# end of class EventChannel



class Watcher:
    """ Feed decoded lifecycle events from *subject* on *transport* into
        *channel*. Messages that fail to decode are logged and counted in
        :attr:`skipped`; they never stop the watcher. The watcher stops on
        its own once the channel is closed.

        :ivar skipped: Number of undecodable messages seen.
    """

    # How often the background thread checks whether the channel closed.
    poll_interval = 0.1

    def __init__(self, transport, subject, channel):

        self.transport = transport
        self.subject = subject
        self.channel = channel
        self.skipped = 0

        self.subscription = None
        self.thread = None


    def start(self):
        """ Subscribe and start the background thread. The subscription is
            live by the time this returns.
        """

        if self.thread is not None:
            raise RuntimeError('watcher already started')

        self.subscription = self.transport.subscribe(self.subject)

        self.thread = threading.Thread(target=self.run, name='lattice-watch')
        self.thread.daemon = True
        self.thread.start()

        return self


    def stop(self, timeout=1):
        """ Close the channel and wait up to *timeout* seconds for the
            background thread to exit.
        """

        self.channel.close()

        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout)


    def handle(self, received):
        """ Decode one message from the bus and queue the event it carries. """

        try:
            event = envelope.decode(received.data).unwrap()
        except DecodeError as e:
            self.skipped += 1
            log.warning('skipping undecodable event on %s: %s', self.subject, e)
            return

        self.channel.put(event)


    def run(self):

        try:
            while not self.channel.closed:
                received = self.subscription.next(self.poll_interval)
                if received is None:
                    continue

                try:
                    self.handle(received)
                except Exception:
                    log.exception('unexpected error handling event on %s', self.subject)
        finally:
            self.subscription.close()
            log.debug('stopped watching %s', self.subject)


# end of class Watcher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
