# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging
import logging.config
from configparser import ConfigParser
from importlib import reload
from os import makedirs
from os.path import join, dirname, expanduser, exists

import sys

import twisted.python.log

config = {}
dispatcher = None
coordinator = None
timer = None
reloader = None
databases = None
auth = None
sources = {}
botmodules = []
options = {}

def twisted_log(eventDict):
    log = logging.getLogger('twisted')
    if 'failure' in eventDict:
        log.error((eventDict.get('why') or 'Unhandled exception') + '\n'
                + str(eventDict['failure'].getTraceback()))
    elif 'warning' in eventDict:
        log.warning(eventDict['warning'])
    else:
        log.debug(' '.join([str(m) for m in eventDict['message']]))

def setup(opts, service=None):
    for key, value in opts.items():
        options[key] = value
    options['base'] = dirname(options['config'])

    # Get Twisted to log to Python logging
    twisted.python.log.startLoggingWithObserver(twisted_log)

    # Undo Twisted logging's redirection of stdout and stderr
    sys.stdout = sys.__stdout__
    sys.stderr = sys.__stderr__
    logging.basicConfig(level=options.get('debug') and logging.DEBUG
                                                    or logging.INFO)

    if not exists(options['config']):
        raise ConfigException('Cannot find configuration file %s'
                % options['config'])

    from mapbot.config import FileConfig
    import mapbot
    mapbot.config = FileConfig(options['config'])
    local = join(options['base'], 'local.ini')
    if exists(local):
        mapbot.config.merge(FileConfig(local))

    if mapbot.config.get('logging'):
        logging.getLogger('core').info('Loading log configuration from %s',
                mapbot.config['logging'])
        logconfig = join(options['base'], expanduser(mapbot.config['logging']))
        create_logdirs(logconfig)
        logging.config.fileConfig(logconfig)

    mapbot.reload_reloader()
    mapbot.reloader.reload_databases()
    mapbot.reloader.reload_auth()
    mapbot.reloader.reload_dispatcher()
    mapbot.reloader.load_botmodules()
    mapbot.reloader.load_sources(service)

def reload_reloader():
    import mapbot
    import mapbot.core
    try:
        reload(mapbot.core)
        mapbot.reloader = mapbot.core.Reloader()
        return True
    except Exception:
        logging.getLogger('core').exception(
                'Exception occured while reloading Reloader')
        return False

def create_logdirs(configfile):
    config = ConfigParser()
    config.read(configfile)

    if config.has_option('handlers', 'keys'):
        handlers = config.get('handlers', 'keys').split(',')
        for handler in handlers:
            section = 'handler_' + handler.strip()
            if config.has_option(section, 'class') and config.get(section, 'class') in ('FileHandler', 'handlers.RotatingFileHandler', 'handlers.TimedRotatingFileHandler'):
                if config.has_option(section, 'args'):
                    args = config.get(section, 'args').strip('() ').split(',')
                    path = args[0].strip().strip('\'"')
                    if path and not exists(dirname(path) or '.'):
                        makedirs(dirname(path))

class MapbotException(Exception):
    pass

class ConfigException(MapbotException):
    pass

class CompileError(MapbotException):
    "A command pattern could not be compiled"

    def __init__(self, pattern, reason):
        MapbotException.__init__(self, pattern, reason)
        self.pattern = pattern
        self.reason = reason

    def __str__(self):
        return 'Illegal template %r: %s' % (self.pattern, self.reason)

class AuthException(MapbotException):
    pass

class HandlerError(MapbotException):
    "Raised inside a handler, recorded on its Invocation"

    def __init__(self, invocation, exc_info):
        MapbotException.__init__(self, invocation, exc_info[1])
        self.invocation = invocation
        self.exc_info = exc_info

    @property
    def original(self):
        return self.exc_info[1]

    def __str__(self):
        return '%s in %s: %s' % (type(self.original).__name__,
                self.invocation.template, self.original)

class AmbiguousRegistration(UserWarning):
    pass

# vi: set et sta sw=4 ts=4:
