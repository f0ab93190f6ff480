# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from copy import copy
from itertools import count
from inspect import getmembers, ismethod
import logging

import mapbot
from mapbot import CompileError
from mapbot.config import BoolOption

_map_order = count()

class BotModule(object):
    """Base class for bot modules.

    A module declares its command surface with the @map decorator, or by
    calling self.map() from register(). Templates are namespaced by the
    module name, which is also the root of derived auth paths.

    Class attributes:
    autoload: Load this BotModule, when loading the module, even if not
    explicitly required in the configuration file
    threaded: Default for templates that don't say otherwise
    auth_fallback: Whether commands are allowed when no permission
    decides. Modules with mutating commands set this False.
    """

    autoload = True
    threaded = False
    auth_fallback = True

    def __new__(cls, *args):
        for name, option in options.items():
            new = copy(option)
            new.default = getattr(cls, name)
            setattr(cls, name, new)

        return super(BotModule, cls).__new__(cls)

    def __init__(self, name):
        self.name = name
        self.log = logging.getLogger('plugins.%s' % name)
        self.dispatcher = None
        self.registrations = []
        self.timers = []
        self.setup()

    def setup(self):
        "Apply configuration. Called on every config reload"
        pass

    def register(self, dispatcher):
        "Map every @map decorated method, in definition order"
        self.dispatcher = dispatcher
        maps = []
        for name, method in getmembers(self, ismethod):
            for i, (pattern, options) in enumerate(getattr(method, 'maps', ())):
                maps.append(((method.map_order, i), pattern, method, options))
        maps.sort(key=lambda m: m[0])
        for order, pattern, method, options in maps:
            self.map(pattern, action=method, **options)

    def shutdown(self):
        "Called before the module is unloaded"
        for aid in self.timers:
            mapbot.timer.remove(aid)
        self.timers = []

    def map(self, pattern, action=None, **options):
        """Register pattern, calling action(message, params) when it matches.

        The default action is the method named like the first word of the
        pattern. Returns the registration, or None if the pattern doesn't
        compile; other templates are unaffected.
        """
        if action is None:
            action = getattr(self, pattern.split()[0].strip('[]'), None)
            if action is None:
                self.log.error('Template %r in %s has no action', pattern, self.name)
                return None
        options.setdefault('threaded', self.threaded)
        options.setdefault('auth_fallback', self.auth_fallback)

        try:
            registration = self.dispatcher.map(self.name, pattern, action, **options)
        except CompileError as e:
            self.log.error("Couldn't register %s: %s", pattern, e)
            return None

        self.registrations.append(registration)
        return registration

    def unmap(self, registration):
        if registration in self.registrations:
            self.registrations.remove(registration)
        return self.dispatcher.unmap(registration)

    def default_auth(self, fragment, allow, location='*'):
        "Set the default permission for fragment of this module"
        return self.dispatcher.default_auth(self.name, fragment, allow, location)

    def add_timer(self, period, callable, args=(), repeat=True, threaded=False):
        "Start a timer that is removed when the module is unloaded"
        aid = mapbot.timer.add(period, callable, args, repeat=repeat,
                               threaded=threaded)
        self.timers.append(aid)
        return aid

def map(pattern, **options):
    """Decorator: register the method for pattern when the module loads.
    Takes the same options as BotModule.map.
    """
    def wrap(function):
        if not hasattr(function, 'maps'):
            function.maps = []
        # Decorators apply bottom up; keep the maps in reading order
        function.maps.insert(0, (pattern, options))
        function.map_order = next(_map_order)
        return function
    return wrap

def authorise(fallback=False):
    """Decorator: deny the method's templates unless a permission allows
    them. Place it above the @map decorators.
    """
    def wrap(function):
        maps = []
        for pattern, options in getattr(function, 'maps', ()):
            options = dict(options)
            options['auth_fallback'] = fallback
            maps.append((pattern, options))
        function.maps = maps
        return function
    return wrap

# This is a bit yucky, but the options need Option from mapbot.config
options = {
    'threaded': BoolOption('threaded', 'Run handlers on the worker pool'),
    'auth_fallback': BoolOption('auth_fallback',
        'Allow commands no permission decides on'),
}

# vi: set et sta sw=4 ts=4:
