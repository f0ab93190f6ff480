# Copyright (c) 2011, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from threading import Event

from twisted.trial import unittest

from mapbot.test import make_message
from mapbot.auth import Auth
from mapbot.coordinator import CancelToken, Coordinator, Invocation
from mapbot.core import Dispatcher, Dispatched
from mapbot.template import compile

class TestCancelToken(unittest.TestCase):

    def test_cancel(self):
        token = CancelToken()
        self.assertFalse(token.cancelled)
        self.assertFalse(token.wait(0))
        token.cancel()
        token.cancel()
        self.assertTrue(token.cancelled)
        self.assertTrue(token.wait(0))

class TestInvocation(unittest.TestCase):

    def setUp(self):
        self.calls = []
        self.template = compile('quiz start', action=self.handler)

    def handler(self, message, params):
        self.calls.append(params)
        message.addresponse('started')

    def test_run(self):
        message = make_message('quiz start')
        invocation = Invocation(self.template, {}, message)
        self.assertEqual(invocation.mode, 'inline')
        self.assertIdentical(message.invocation, invocation)
        invocation.run()
        self.assertEqual(invocation.state, 'completed')
        self.assertEqual(self.calls, [{}])
        self.assertEqual(message.responses, ['started'])

    def test_run_once(self):
        invocation = Invocation(self.template, {}, make_message('quiz start'))
        invocation.run()
        invocation.run()
        self.assertEqual(len(self.calls), 1)

    def test_cancel_pending(self):
        invocation = Invocation(self.template, {}, make_message('quiz start'))
        invocation.cancel()
        invocation.cancel()
        self.assertEqual(invocation.state, 'cancelled')
        invocation.run()
        self.assertEqual(self.calls, [])
        self.assertTrue(invocation.finished)

    def test_cancel_finished(self):
        invocation = Invocation(self.template, {}, make_message('quiz start'))
        invocation.run()
        invocation.cancel()
        self.assertEqual(invocation.state, 'completed')

    def test_mode_override(self):
        invocation = Invocation(self.template, {}, make_message('quiz start'),
                                threaded=True)
        self.assertEqual(invocation.mode, 'worker')

class TestCoordinator(unittest.TestCase):

    def setUp(self):
        self.coordinator = Coordinator(1, 2)
        self.release = Event()
        self.started = Event()

    def tearDown(self):
        self.release.set()
        self.coordinator.stop()

    def blocking(self, message, params):
        self.started.set()
        self.release.wait(10)
        message.addresponse('done')

    def test_inline(self):
        template = compile('ping', action=lambda m, p: m.addresponse('pong'))
        message = make_message('ping')
        d = self.coordinator.submit(Invocation(template, {}, message))
        self.assertTrue(d.called)
        self.assertEqual(message.replies, ['pong'])
        self.assertFalse(self.coordinator.started)

    def test_threaded_returns_first(self):
        template = compile('slow', action=self.blocking, threaded=True)
        message = make_message('slow')
        invocation = Invocation(template, {}, message)

        d = self.coordinator.submit(invocation)
        self.assertFalse(d.called)
        self.assertFalse(invocation.finished)
        self.assertEqual(message.replies, [])
        self.assertIn(invocation, self.coordinator.inflight)

        self.release.set()

        def check(result):
            self.assertIdentical(result, invocation)
            self.assertEqual(invocation.state, 'completed')
            self.assertEqual(message.replies, ['done'])
            self.assertNotIn(invocation, self.coordinator.inflight)
        return d.addCallback(check)

    def test_threaded_dispatch(self):
        dispatcher = Dispatcher(Auth(permissions=['+*']), self.coordinator)
        dispatcher.map('slow', 'slow', self.blocking, threaded=True)
        message = make_message('slow')

        outcome = dispatcher.handle(message)
        self.assertTrue(isinstance(outcome, Dispatched))
        self.assertFalse(outcome.deferred.called)
        self.assertEqual(message.replies, [])

        self.started.wait(10)
        self.assertEqual(outcome.invocation.state, 'running')
        self.release.set()

        def check(invocation):
            self.assertEqual(message.replies, ['done'])
        return outcome.deferred.addCallback(check)

    def test_cooperative_cancel(self):
        def waiting(message, params):
            self.started.set()
            message.invocation.token.wait(10)

        template = compile('wait', action=waiting, threaded=True)
        invocation = Invocation(template, {}, make_message('wait'))
        d = self.coordinator.submit(invocation)
        self.started.wait(10)
        invocation.cancel()

        def check(result):
            self.assertEqual(invocation.state, 'cancelled')
        return d.addCallback(check)

    def test_threaded_error(self):
        def broken(message, params):
            raise KeyError('missing')

        template = compile('broken', action=broken, threaded=True)
        message = make_message('broken')
        d = self.coordinator.submit(Invocation(template, {}, message))

        def check(invocation):
            self.assertEqual(invocation.state, 'failed')
            self.assertEqual(message.replies,
                             ["Error running broken: 'missing'"])
        return d.addCallback(check)

    def test_call(self):
        d = self.coordinator.call(lambda a, b: a + b, 1, 2)
        return d.addCallback(self.assertEqual, 3)

    def test_call_failure_is_logged(self):
        def broken():
            raise ValueError('boom')
        d = self.coordinator.call(broken)
        return d.addCallback(self.assertEqual, None)

# vi: set et sta sw=4 ts=4:
