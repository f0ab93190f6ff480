# Copyright (c) 2008-2010, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import warnings

class Message(dict):
    """A line of chat addressed to the bot.

    actor is the sender's nick!user@host, location the channel, or None for
    private messages. reply is called with each response once the handler
    has run.
    """

    def __init__(self, text, actor=None, location=None, reply=None,
                 source=None):
        self.text = text
        self.actor = actor
        self.location = location
        self.reply = reply
        self.source = source
        self.responses = []

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(e)

    def __setattr__(self, name, value):
        self[name] = value

    @property
    def public(self):
        return bool(self.location)

    @property
    def nick(self):
        if not self.actor:
            return None
        return self.actor.split('!', 1)[0]

    @property
    def target(self):
        "Where replies go: the channel, or the sender in private"
        return self.location or self.nick

    def tokens(self):
        return self.text.split()

    def addresponse(self, response, params={}):
        """Add a response to the message.

        params are %-substituted into response. Pass a single item or a
        dict.
        """
        if response is None:
            # We want to detect this now, so we know which plugin is to blame
            raise Exception("Can't have a None response")

        if isinstance(params, (tuple, list)):
            warnings.warn(
                'addresponse() params should be a single item or dict. '
                "You really shouldn't use tuples / lists as they can cause "
                'difficulties with translation later.',
                SyntaxWarning, stacklevel=2)

        if isinstance(response, bytes):
            warnings.warn(
                'addresponse() response should be text, not a byte string',
                UnicodeWarning, stacklevel=2)
            response = response.decode('utf-8', 'replace')

        if isinstance(response, str) and params:
            response = response % params

        self.responses.append(response)

    def flush(self):
        "Hand collected responses to the reply callback"
        responses, self.responses = self.responses, []
        if self.reply is not None:
            for response in responses:
                self.reply(response)
        return responses

    def __repr__(self):
        return '<Message %r from %s in %s>' % (self.text, self.actor,
                self.location or 'private')

# vi: set et sta sw=4 ts=4:
