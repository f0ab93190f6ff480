# Copyright (c) 2008-2010, Michael Gorven
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging
from os.path import join, exists

from twisted.internet import reactor

import mapbot
from mapbot.config import FileConfig
from mapbot.plugins import BotModule, map, authorise
from mapbot.utils import human_join

log = logging.getLogger('plugins.admin')

class Modules(BotModule):
    """lsmod
    (load|unload) <module>
    rescan
    reload (auth|databases)"""

    def register(self, dispatcher):
        BotModule.register(self, dispatcher)
        self.default_auth('*', False)
        self.default_auth('lsmod', True)

    @map('lsmod')
    def lsmod(self, message, params):
        names = []
        for botmodule in mapbot.botmodules:
            if botmodule.name not in names:
                names.append(botmodule.name)
        message.addresponse('Modules: %s', human_join(sorted(names)) or 'none')

    @authorise()
    @map('load :module')
    def load(self, message, params):
        result = mapbot.reloader.load_botmodule(params['module'])
        message.addresponse(result and '%s loaded' or "Couldn't load %s",
                params['module'])

    @authorise()
    @map('unload :module')
    def unload(self, message, params):
        result = mapbot.reloader.unload_botmodule(params['module'])
        message.addresponse(result and '%s unloaded' or "Couldn't unload %s",
                params['module'])

    @authorise()
    @map('rescan')
    def rescan(self, message, params):
        loaded = mapbot.reloader.rescan()
        message.addresponse('Reloaded %s', human_join(loaded) or 'nothing')

    @authorise()
    @map('reload :part', requirements={'part': 'auth|databases'})
    def reload(self, message, params):
        part = params['part'].lower()
        result = getattr(mapbot.reloader, 'reload_%s' % part)()
        message.addresponse(result and '%s reloaded' or "Couldn't reload %s", part)

class Config(BotModule):
    "reread config"

    def register(self, dispatcher):
        BotModule.register(self, dispatcher)
        self.default_auth('reread', False)

    @authorise()
    @map('reread config')
    def reread(self, message, params):
        mapbot.config.reload()
        local = join(mapbot.options['base'], 'local.ini')
        if exists(local):
            mapbot.config.merge(FileConfig(local))
        mapbot.reloader.reload_config()
        message.addresponse('Configuration reread')

class Sources(BotModule):
    """sources
    connect [to] <source>
    disconnect [from] <source>"""

    def register(self, dispatcher):
        BotModule.register(self, dispatcher)
        self.default_auth('sources', True)
        self.default_auth('connect', False)
        self.default_auth('disconnect', False)

    @map('sources')
    def sources(self, message, params):
        sources = []
        for name, source in mapbot.sources.items():
            url = source.url()
            sources.append(url and '%s (%s)' % (name, url) or name)
        message.addresponse('Sources: %s', human_join(sorted(sources)) or 'none')

    @authorise()
    @map('connect [to] :source')
    def connect(self, message, params):
        source = params['source']
        if source not in mapbot.sources:
            message.addresponse("I don't have a source called %s", source)
        elif mapbot.sources[source].connect():
            message.addresponse('Connecting to %s', source)
        else:
            message.addresponse("I couldn't connect to %s", source)

    @authorise()
    @map('disconnect [from] :source')
    def disconnect(self, message, params):
        source = params['source']
        if source not in mapbot.sources:
            message.addresponse('I am not connected to %s', source)
        elif mapbot.sources[source].disconnect():
            message.addresponse('Disconnecting from %s', source)
        else:
            message.addresponse("I couldn't disconnect from %s", source)

class Die(BotModule):
    "die"

    def register(self, dispatcher):
        BotModule.register(self, dispatcher)
        self.default_auth('die', False)

    @authorise()
    @map('die')
    def die(self, message, params):
        log.info('Stopping at the request of %s', message.actor)
        for name, source in mapbot.sources.items():
            try:
                source.disconnect()
            except NotImplementedError:
                log.debug("%s source can't disconnect", name)
        reactor.stop()

# vi: set et sta sw=4 ts=4:
