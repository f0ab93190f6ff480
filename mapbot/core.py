# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from contextlib import contextmanager
from importlib import import_module, reload
from itertools import count
from os.path import join, expanduser
from threading import RLock
import inspect
import logging
import sys
import warnings

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from twisted.python.modules import getModule

import mapbot
from mapbot import AmbiguousRegistration, CompileError
from mapbot.auth import Auth
from mapbot.config import section
from mapbot.coordinator import Coordinator, Invocation
from mapbot.matcher import resolve
from mapbot.template import Template
from mapbot.timer import Timer

_registration_ids = count(1)

class Registration(object):
    "Handle returned by Dispatcher.map, accepted by Dispatcher.unmap"

    def __init__(self, template):
        self.id = next(_registration_ids)
        self.template = template

    @property
    def module(self):
        return self.template.module

    def __repr__(self):
        return '<Registration %i %r>' % (self.id, self.template)

class RouterState(object):
    "An immutable snapshot of the registered templates, in priority order"

    def __init__(self, registrations=()):
        self.registrations = tuple(registrations)
        self.templates = tuple(r.template for r in self.registrations)

    def __len__(self):
        return len(self.registrations)

    def __iter__(self):
        return iter(self.registrations)

class Outcome(object):
    recognised = True
    permitted = True

class NoMatch(Outcome):
    "No template recognised the message"
    recognised = False
    permitted = False

    def __init__(self, failures=()):
        self.failures = list(failures)

    def __repr__(self):
        return '<NoMatch %i failures>' % len(self.failures)

class Denied(Outcome):
    "A template matched, but the actor may not use it here"
    permitted = False

    def __init__(self, auth_path, template, params=None):
        self.auth_path = auth_path
        self.template = template
        self.params = params

    def __repr__(self):
        return '<Denied %s>' % self.auth_path

class Dispatched(Outcome):
    "A handler was started; inline ones have already finished"

    def __init__(self, invocation):
        self.invocation = invocation

    @property
    def template(self):
        return self.invocation.template

    @property
    def params(self):
        return self.invocation.params

    @property
    def deferred(self):
        return self.invocation.deferred

    def __repr__(self):
        return '<Dispatched %r>' % self.invocation

class Dispatcher(object):
    """Routes messages to the handlers bound by registered templates.

    Readers take the current RouterState without locking. Writers build a
    new state and swap it in while holding the lock.
    """

    def __init__(self, auth=None, coordinator=None):
        self.log = logging.getLogger('core.dispatcher')
        self.auth = auth is not None and auth or Auth()
        self.coordinator = coordinator is not None and coordinator or Coordinator()
        self.state = RouterState()
        self.defaults = {}
        self.lock = RLock()
        self._staging = None

    @property
    def templates(self):
        return self.state.templates

    def _commit(self, registrations):
        if self._staging is not None:
            self._staging[:] = registrations
        else:
            self.state = RouterState(registrations)

    def _current(self):
        if self._staging is not None:
            return list(self._staging)
        return list(self.state.registrations)

    @contextmanager
    def batch(self):
        """Group several map/unmap calls into one swap of the state.
        Messages handled meanwhile see the state from before the batch.
        """
        with self.lock:
            if self._staging is not None:
                yield self
                return
            self._staging = list(self.state.registrations)
            try:
                yield self
                self.state = RouterState(self._staging)
            finally:
                self._staging = None

    def map(self, module, pattern, action, **options):
        """Register a template for module. Returns a handle for unmap().
        Raises CompileError if pattern is malformed.
        """
        template = Template(pattern, action=action, module=module, **options)
        registration = Registration(template)

        with self.lock:
            registrations = self._current()
            skeleton = template.skeleton()
            for other in registrations:
                if other.template.skeleton() == skeleton:
                    self.log.warning('%r is indistinguishable from %r, which takes priority',
                            template, other.template)
                    warnings.warn('%r is shadowed by %r' % (template, other.template),
                            AmbiguousRegistration, stacklevel=2)
                    break
            registrations.append(registration)
            self._commit(registrations)

        self.log.debug('Mapped %r', template)
        return registration

    def unmap(self, registration):
        with self.lock:
            registrations = self._current()
            if registration not in registrations:
                return False
            registrations.remove(registration)
            self._commit(registrations)
        self.log.debug('Unmapped %r', registration.template)
        return True

    def unmap_module(self, module):
        with self.lock:
            registrations = self._current()
            keep = [r for r in registrations if r.module != module]
            self._commit(keep)
        removed = len(registrations) - len(keep)
        if removed:
            self.log.debug('Unmapped %i templates of %s', removed, module)
        return removed

    def default_auth(self, module, fragment, allow, location='*'):
        "Set the baseline permission for fragment in module's namespace"
        if fragment in (None, '', '*'):
            fragment = None
        path = '::'.join(part for part in (module, fragment) if part)
        self.defaults[(path, location)] = allow
        self.auth.register_default(path, allow, location)
        return path

    def handle(self, message):
        """Match, authorise and run a message.

        Returns NoMatch, Denied or Dispatched. Handler exceptions never
        escape: they are logged and reported to the message's sender.
        """
        tokens = message.text.split()
        result = resolve(tokens, self.state.templates, message)

        if not result.matched:
            self.log.debug('No template recognised %r', message)
            return NoMatch(result.failures)

        template = result.template
        if not self.auth.permitted(message.actor, message.location,
                                   template.auth_path, template.auth_fallback):
            self.log.info('%s may not use %s (%s) in %s', message.actor,
                    template.pattern, template.auth_path,
                    message.location or 'private')
            return Denied(template.auth_path, template, result.params)

        invocation = Invocation(template, result.params, message)
        self.log.debug('Dispatching %r', invocation)
        self.coordinator.submit(invocation)
        return Dispatched(invocation)

class Reloader(object):

    def __init__(self, package='mapbot.plugins'):
        self.log = logging.getLogger('core.reloader')
        self.package = package

    def reload_dispatcher(self):
        router = section('router')
        mapbot.coordinator = Coordinator(int(router.get('minthreads', 1)),
                                         int(router.get('maxthreads', 10)))
        mapbot.timer = Timer(mapbot.coordinator)
        mapbot.dispatcher = Dispatcher(mapbot.auth, mapbot.coordinator)
        self.log.info('Reloaded dispatcher')
        return True

    def reload_auth(self):
        config = section('auth')
        auth = Auth(permissions=config.get('permissions') or (),
                    owner_password=config.get('password'),
                    owner_masks=config.get('owner') or ())
        if mapbot.databases and 'mapbot' in mapbot.databases:
            session = mapbot.databases.mapbot()
            try:
                auth.load(session)
            finally:
                session.close()
        if mapbot.dispatcher is not None:
            for (path, location), allow in mapbot.dispatcher.defaults.items():
                auth.register_default(path, allow, location)
            mapbot.dispatcher.auth = auth
        mapbot.auth = auth
        self.log.info('Reloaded auth')
        return True

    def reload_databases(self):
        mapbot.databases = DatabaseManager()
        return True

    def load_sources(self, service=None):
        sources = section('sources')
        for name in sources:
            if not sources[name].get('disabled', False):
                self.load_source(name, service)

    def load_source(self, name, service=None):
        config = section('sources')[name]
        type = config.get('type', name)
        module = 'mapbot.source.%s' % type
        try:
            factory = import_module(module).SourceFactory
        except Exception:
            self.log.exception("Couldn't import %s", module)
            return False

        mapbot.sources[name] = factory(name)
        mapbot.sources[name].setServiceParent(service)
        self.log.info('Loaded %s source %s', type, name)
        return True

    def load_botmodules(self):
        """Configuration:
        [plugins]
            load = List of modules / module.Classes to load
            noload = List of modules / module.Classes to skip
            autoload = (Boolean) Load all modules by default?
        """
        config = section('plugins')
        load = config.get('load') or []
        noload = config.get('noload') or []

        names = [name.split('.')[0] for name in load]
        if config.get('autoload', True) in (True, 'True', 'true', '1'):
            for module in getModule(self.package).iterModules():
                name = module.name.split('.')[-1]
                if name not in names:
                    names.append(name)

        for name in names:
            load_classes = [p.split('.')[1] for p in load if p.startswith(name + '.')]
            noload_classes = [p.split('.')[1] for p in noload if p.startswith(name + '.')]
            if name not in noload or load_classes:
                self.load_botmodule(name, noload=noload_classes,
                        load=load_classes, load_all=(name in load),
                        noload_all=(name in noload))

    def load_botmodule(self, name, noload=(), load=(), load_all=False,
                       noload_all=False):
        """Load bot module <name> and register its templates.
        Skip the classes in noload, load those in load.
        If load_all, the autoload attribute on each class isn't checked.
        If noload_all, only classes in load are loaded.
        """
        from mapbot.plugins import BotModule

        modname = '%s.%s' % (self.package, name)
        try:
            if modname in sys.modules:
                module = reload(sys.modules[modname])
            else:
                module = import_module(modname)
        except ImportError as e:
            self.log.warning("Couldn't load %s module because it requires module %s",
                    name, e.name)
            return False
        except Exception:
            self.log.exception("Couldn't load %s module", name)
            return False

        dispatcher = mapbot.dispatcher
        with dispatcher.batch():
            self.unload_botmodule(name)
            try:
                for classname, klass in inspect.getmembers(module, inspect.isclass):
                    if (not issubclass(klass, BotModule) or klass is BotModule
                            or klass.__module__ != modname):
                        continue
                    if (classname not in noload and (classname in load
                            or ((load_all or klass.autoload) and not noload_all))):
                        self.log.debug('Loading BotModule: %s.%s', name, classname)
                        botmodule = klass(name)
                        botmodule.register(dispatcher)
                        mapbot.botmodules.append(botmodule)
                    else:
                        self.log.debug('Skipping BotModule: %s.%s', name, classname)
            except Exception:
                self.log.exception("Couldn't instantiate %s BotModule of %s module",
                        classname, name)
                self.unload_botmodule(name)
                return False

        self.log.info('Loaded %s module', name)
        return True

    def unload_botmodule(self, name):
        botmodules = [b for b in mapbot.botmodules if b.name == name]
        for botmodule in botmodules:
            try:
                botmodule.shutdown()
            except Exception:
                self.log.exception('Exception occured shutting down %s', name)
            mapbot.botmodules.remove(botmodule)
        removed = mapbot.dispatcher.unmap_module(name)

        if botmodules or removed:
            self.log.info('Unloaded %s module', name)
            return True
        return False

    def rescan(self):
        "Reload every loaded module, swapping the templates in one go"
        names = []
        for botmodule in mapbot.botmodules:
            if botmodule.name not in names:
                names.append(botmodule.name)

        with mapbot.dispatcher.batch():
            for name in names:
                self.unload_botmodule(name)
            loaded = [name for name in names if self.load_botmodule(name)]

        self.log.info('Rescanned %i modules', len(loaded))
        return loaded

    def reload_config(self):
        for botmodule in mapbot.botmodules:
            botmodule.setup()
        self.log.info('Notified all modules of config reload')

class DatabaseManager(dict):

    def __init__(self):
        from mapbot.models import metadata

        self.log = logging.getLogger('core.databases')
        databases = section('databases')
        for name in databases:
            engine = self.load(name, databases[name])
            metadata.create_all(engine)

    def load(self, name, uri):
        echo = section('debugging').get('sqlalchemy_echo', False) in \
                (True, 'True', 'true', '1')

        if uri.startswith('sqlite:///') and uri != 'sqlite:///:memory:':
            uri = 'sqlite:///' + join(mapbot.options.get('base', ''),
                    expanduser(uri.replace('sqlite:///', '', 1)))

        engine = create_engine(uri, echo=echo)
        self[name] = scoped_session(sessionmaker(bind=engine))
        self.log.info('Loaded %s database', name)
        return engine

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

# vi: set et sta sw=4 ts=4:
