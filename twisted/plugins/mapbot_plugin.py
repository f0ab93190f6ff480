from zope.interface import implementer

from twisted.python import usage
from twisted.plugin import IPlugin
from twisted.application.service import IServiceMaker, MultiService

import mapbot

class Options(usage.Options):
    optFlags = [['debug', 'd', 'Output debug messages']]

    def parseArgs(self, config='mapbot.ini'):
        self['config'] = config

@implementer(IServiceMaker, IPlugin)
class MapbotServiceMaker(object):
    tapname = 'mapbot'
    description = 'An IRC bot with a pattern-based command router'
    options = Options

    def makeService(self, options):
        service = MultiService()
        mapbot.setup(options, service)
        return service

serviceMaker = MapbotServiceMaker()

# vi: set et sta sw=4 ts=4:
