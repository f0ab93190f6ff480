# Copyright (c) 2009-2011, Jeremy Thurgood, Max Rabkin, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging

from twisted.python import log

import mapbot
from mapbot.event import Message


# Trial collects log output, so we feed ours logs into it.
class TwistedLogHandler(logging.Handler):
    def emit(self, record):
        log.msg(self.format(record))

logging.getLogger().addHandler(TwistedLogHandler())


class FakeConfig(dict):
    def __init__(self, basedict=None):
        if basedict is None: basedict = {}
        for name, value in basedict.items():
            if isinstance(value, dict):
                value = FakeConfig(value)
            self[name] = value

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    def __setattr__(self, name, value):
        self[name] = value

def set_config(config):
    mapbot.config = FakeConfig(config)


class Replies(list):
    "A reply callback that remembers what it was given"

    def __call__(self, response):
        self.append(response)


def make_message(text, actor='alice!alice@example.com', location='#chan'):
    "Create a message whose replies are collected in message.replies"
    replies = Replies()
    message = Message(text, actor=actor, location=location, reply=replies,
                      source='test')
    message.replies = replies
    return message


def run():
    "Run the mapbot test suite. Bit of a hack"
    from twisted.scripts.trial import run
    import sys
    sys.argv.append('mapbot')
    run()

# vi: set et sta sw=4 ts=4:
