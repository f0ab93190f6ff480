# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from itertools import count
import logging

from mapbot.coordinator import CancelToken

log = logging.getLogger('core.timer')

class Action(object):

    def __init__(self, id, callable, args, period, repeat, blocked, threaded):
        self.id = id
        self.callable = callable
        self.args = tuple(args)
        self.period = period
        self.repeat = repeat
        self.blocked = blocked
        self.threaded = threaded
        self.token = CancelToken()
        self.call = None
        self.running = False
        self.missed = False
        self.failing = False

    @property
    def scheduled(self):
        return self.call is not None and self.call.active()

    def __repr__(self):
        return '<Action %i %r every %ss%s>' % (self.id,
                getattr(self.callable, '__name__', self.callable),
                self.period, not self.repeat and ' once' or '')

class Timer(object):
    """Runs callables after a delay, once or repeatedly.

    Actions are identified by the id add() returns. Removing an action
    twice, or one that already ran, is a no-op.
    """

    def __init__(self, coordinator=None, reactor=None):
        if reactor is None:
            from twisted.internet import reactor
        self.reactor = reactor
        self.coordinator = coordinator
        self.actions = {}
        self._ids = count(1)

    def add(self, period, callable, args=(), repeat=True, start=None,
            blocked=False, threaded=False):
        """Run callable(*args) every period seconds, or once if not repeat.
        start is the delay before the first run, period by default.
        """
        if threaded and self.coordinator is None:
            raise ValueError('Threaded timer actions need a coordinator')
        action = Action(next(self._ids), callable, args, period, repeat,
                        blocked, threaded)
        self.actions[action.id] = action
        delay = period if start is None else start
        self._schedule(action, delay)
        log.debug('Added %r', action)
        return action.id

    def add_once(self, delay, callable, args=(), threaded=False):
        return self.add(delay, callable, args, repeat=False,
                        threaded=threaded)

    def remove(self, aid):
        action = self.actions.pop(aid, None)
        if action is None:
            return False
        action.token.cancel()
        if action.scheduled:
            action.call.cancel()
        action.call = None
        log.debug('Removed %r', action)
        return True

    def block(self, aid):
        if aid in self.actions:
            self.actions[aid].blocked = True

    def unblock(self, aid):
        action = self.actions.get(aid)
        if action is None or not action.blocked:
            return
        action.blocked = False
        if action.missed:
            action.missed = False
            if action.scheduled:
                action.call.cancel()
            self._schedule(action, 0)

    def reschedule(self, aid, period):
        action = self.actions.get(aid)
        if action is None:
            return False
        action.period = period
        if not action.running:
            if action.scheduled:
                action.call.cancel()
            self._schedule(action, period)
        return True

    def __contains__(self, aid):
        return aid in self.actions

    def stop(self):
        for aid in list(self.actions):
            self.remove(aid)

    def _schedule(self, action, delay):
        action.call = self.reactor.callLater(max(delay, 0), self._fire, action)

    def _fire(self, action):
        action.call = None
        if self.actions.get(action.id) is not action:
            return

        if action.blocked:
            action.missed = True
            if action.repeat and action.period > 0:
                self._schedule(action, action.period)
            return

        action.running = True
        if action.threaded:
            d = self.coordinator.call(self._run, action)
            d.addBoth(lambda result: self._after(action))
        else:
            self._run(action)
            self._after(action)

    def _run(self, action):
        try:
            action.callable(*action.args)
            if action.failing:
                log.info('No longer failing: %r', action)
                action.failing = False
        except Exception:
            if not action.failing:
                action.failing = True
                log.exception('Timer action failing: %r', action)
            else:
                log.debug('Still failing: %r', action)

    def _after(self, action):
        action.running = False
        if self.actions.get(action.id) is not action:
            return
        if action.repeat and action.period > 0 and not action.token.cancelled:
            self._schedule(action, action.period)
        else:
            del self.actions[action.id]

# vi: set et sta sw=4 ts=4:
