# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from threading import Event, Lock
import logging
import sys

from twisted.internet import defer, threads
from twisted.python.threadpool import ThreadPool

from mapbot import HandlerError

log = logging.getLogger('core.coordinator')

PENDING = 'pending'
RUNNING = 'running'
COMPLETED = 'completed'
FAILED = 'failed'
CANCELLED = 'cancelled'

INLINE = 'inline'
WORKER = 'worker'

class CancelToken(object):
    "Cooperative cancellation flag. Cancelling twice is harmless."

    def __init__(self):
        self._event = Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def wait(self, timeout=None):
        "Sleep for up to timeout seconds, returning True if cancelled"
        return self._event.wait(timeout)

class Invocation(object):
    """One handler call: pending -> running -> completed, failed or
    cancelled.

    deferred fires with the invocation once it has finished, in any state.
    """

    def __init__(self, template, params, message, threaded=None):
        self.template = template
        self.params = params
        self.message = message
        if threaded is None:
            threaded = template.threaded
        self.mode = threaded and WORKER or INLINE
        self.token = CancelToken()
        self.state = PENDING
        self.result = None
        self.error = None
        self.deferred = defer.Deferred()
        self._lock = Lock()
        message.invocation = self

    @property
    def threaded(self):
        return self.mode == WORKER

    @property
    def cancelled(self):
        return self.token.cancelled

    @property
    def finished(self):
        return self.state in (COMPLETED, FAILED, CANCELLED)

    def cancel(self):
        """Ask the handler to stop. A pending invocation never starts; a
        running one has to notice the token itself.
        """
        self.token.cancel()
        with self._lock:
            if self.state == PENDING:
                self.state = CANCELLED
                log.debug('Cancelled %r before it started', self)

    def run(self):
        with self._lock:
            if self.state != PENDING:
                return self
            self.state = RUNNING

        message = self.message
        try:
            self.result = self.template.action(message, self.params)
        except Exception:
            self.error = HandlerError(self, sys.exc_info())
            log.exception('Exception occured in %r.\nActor: %s Location: %s Params: %r',
                    self.template, message.actor,
                    message.location or 'private', self.params)
            message.addresponse('Error running %(command)s: %(error)s', {
                'command': self.template.command,
                'error': self.error.original,
            })
            state = FAILED
        else:
            state = self.cancelled and CANCELLED or COMPLETED

        with self._lock:
            self.state = state
        return self

    def __repr__(self):
        return '<Invocation %s %r %s>' % (self.mode, self.template, self.state)

class Coordinator(object):
    """Runs invocations inline, or on a bounded pool of worker threads.

    Submitting to the pool never waits: results come back to the reactor
    thread, where the collected responses are delivered.
    """

    def __init__(self, minthreads=1, maxthreads=10, reactor=None):
        if reactor is None:
            from twisted.internet import reactor
        self.reactor = reactor
        self.pool = ThreadPool(minthreads, maxthreads, name='mapbot-workers')
        self.inflight = set()
        self._trigger = None

    @property
    def started(self):
        return self.pool.started

    def start(self):
        if self.pool.started:
            return
        self.pool.start()
        self._trigger = self.reactor.addSystemEventTrigger(
                'during', 'shutdown', self.stop)
        log.debug('Started worker pool (%i-%i threads)',
                self.pool.min, self.pool.max)

    def stop(self):
        if self._trigger is not None:
            try:
                self.reactor.removeSystemEventTrigger(self._trigger)
            except (KeyError, ValueError):
                pass
            self._trigger = None
        for invocation in list(self.inflight):
            invocation.cancel()
        if self.pool.started:
            self.pool.stop()
            log.debug('Stopped worker pool')

    def submit(self, invocation):
        "Start the invocation and return its deferred"
        if not invocation.threaded:
            invocation.run()
            self._finished(invocation)
            return invocation.deferred

        self.start()
        self.inflight.add(invocation)
        d = threads.deferToThreadPool(self.reactor, self.pool, invocation.run)
        d.addCallbacks(self._finished, self._crashed,
                       errbackArgs=(invocation,))
        return invocation.deferred

    def _finished(self, invocation):
        self.inflight.discard(invocation)
        try:
            invocation.message.flush()
        except Exception:
            log.exception('Exception occured delivering responses of %r',
                    invocation)
        invocation.deferred.callback(invocation)
        return invocation

    def _crashed(self, failure, invocation):
        log.error('Worker crashed running %r: %s', invocation,
                failure.getTraceback())
        invocation.state = FAILED
        self.inflight.discard(invocation)
        invocation.deferred.callback(invocation)

    def call(self, callable, *args, **kw):
        """Run a plain callable on the pool, logging any exception.
        Returns a Deferred firing with its result.
        """
        self.start()
        d = threads.deferToThreadPool(self.reactor, self.pool, callable,
                                      *args, **kw)
        d.addErrback(self._log_failure, callable)
        return d

    def _log_failure(self, failure, callable):
        log.error('Exception occured in %r on worker pool:\n%s',
                callable, failure.getTraceback())

# vi: set et sta sw=4 ts=4:
