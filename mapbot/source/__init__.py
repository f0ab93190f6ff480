# Copyright (c) 2008-2010, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from copy import copy

from twisted.plugin import pluginPackagePaths

__path__ = pluginPackagePaths(__name__) + __path__

class MapbotSourceFactory(object):
    """Base class for sources: connections that feed Messages to the
    dispatcher and deliver their replies.
    """

    config_section = 'sources'
    prefix = None

    def __new__(cls, *args):
        cls.type = cls.__module__.split('.')[2]

        for name, option in options.items():
            new = copy(option)
            default = getattr(cls, name)
            new.default = default
            setattr(cls, name, new)

        return super(MapbotSourceFactory, cls).__new__(cls)

    def __init__(self, name):
        self.name = name
        self.setup()

    def setup(self):
        "Apply configuration. Called on every config reload"
        pass

    def setServiceParent(self, service):
        "Start the source and connect"
        raise NotImplementedError

    def connect(self):
        "Connect (if disconnected)"
        self.setServiceParent(None)
        return True

    def disconnect(self):
        "Disconnect source"
        raise NotImplementedError

    def url(self):
        "Return a URL describing the source"
        return None

    def addressed(self, text, nick):
        """Strip the bot's nick or the command prefix off text.
        Returns None if text isn't addressed to the bot.
        """
        prefix = self.prefix
        if prefix and text.startswith(prefix):
            return text[len(prefix):].strip()

        if nick:
            lowered = text.lower()
            nick = nick.lower()
            if lowered.startswith(nick) and lowered[len(nick):len(nick) + 1] in (':', ','):
                return text[len(nick) + 1:].strip()
        return None

from mapbot.config import Option

options = {
    'prefix': Option('prefix', 'Command prefix that addresses the bot in channels'),
}

# vi: set et sta sw=4 ts=4:
