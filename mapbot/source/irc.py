# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging

from twisted.internet import reactor
from twisted.words.protocols import irc
from twisted.internet import protocol, ssl
from twisted.application import internet

import mapbot
from mapbot.config import Option, IntOption, BoolOption, FloatOption, ListOption
from mapbot.event import Message
from mapbot.matcher import RequirementFailure
from mapbot.source import MapbotSourceFactory

class Ircbot(irc.IRCClient):

    _ping_deferred = None
    _reconnect_deferred = None

    def connectionMade(self):
        self.nickname = self.factory.nick or mapbot.config['botname']

        irc.IRCClient.connectionMade(self)

        self.factory.resetDelay()
        self.factory.proto = self
        self._ping_deferred = reactor.callLater(self.factory.ping_interval, self._idle_ping)
        self.factory.log.info('Connected')

    def connectionLost(self, reason):
        self.factory.log.info('Disconnected (%s)', reason)
        for call in (self._ping_deferred, self._reconnect_deferred):
            if call is not None and call.active():
                call.cancel()
        self._ping_deferred = self._reconnect_deferred = None
        irc.IRCClient.connectionLost(self, reason)

    def _idle_ping(self):
        self.factory.log.log(logging.DEBUG - 5, 'Sending idle PING')
        self._ping_deferred = None
        self._reconnect_deferred = reactor.callLater(self.factory.pong_timeout, self._timeout_reconnect)
        self.sendLine('PING idle-mapbot')

    def _timeout_reconnect(self):
        self.factory.log.info('Ping-Pong timeout. Reconnecting')
        self.transport.loseConnection()

    def irc_PONG(self, prefix, params):
        if params[-1] == 'idle-mapbot' and self._reconnect_deferred is not None:
            self.factory.log.log(logging.DEBUG - 5, 'Received PONG')
            self._reconnect_deferred.cancel()
            self._reconnect_deferred = None
            self._ping_deferred = reactor.callLater(self.factory.ping_interval, self._idle_ping)

    def dataReceived(self, data):
        irc.IRCClient.dataReceived(self, data)
        if self._ping_deferred is not None and self._ping_deferred.active():
            self._ping_deferred.reset(self.factory.ping_interval)

    def signedOn(self):
        if self.factory.modes:
            self.mode(self.nickname, True, self.factory.modes)
        for channel in self.factory.channels:
            self.join(channel)
        self.factory.log.info('Signed on')

    def privmsg(self, user, channel, msg):
        if channel.lower() == self.nickname.lower():
            location = None
            text = self.factory.addressed(msg, self.nickname)
            if text is None:
                text = msg.strip()
        else:
            location = channel
            text = self.factory.addressed(msg, self.nickname)
            if text is None:
                return
        if not text:
            return

        message = Message(text, actor=user, location=location,
                          source=self.factory.name)
        message.reply = lambda response: self.send(message.target, response)
        self.factory.log.debug('Received message from %s in %s: %s',
                message.nick, location or 'private', text)

        outcome = mapbot.dispatcher.handle(message)
        if not outcome.recognised:
            for failure in outcome.failures:
                if isinstance(failure, RequirementFailure):
                    self.send(message.target, '%s: %s' % (message.nick, failure.friendly))
                    break
        elif not outcome.permitted:
            self.send(message.target, "%s: Sorry, you aren't allowed to %s"
                    % (message.nick, outcome.auth_path))

    def send(self, target, response):
        for line in str(response).splitlines():
            self.msg(target, line)
        self.factory.log.debug('Sent privmsg to %s: %s', target, response)

    def join(self, channel):
        self.factory.log.info('Joining %s', channel)
        irc.IRCClient.join(self, channel)

    def leave(self, channel):
        self.factory.log.info('Leaving %s', channel)
        irc.IRCClient.leave(self, channel)

class SourceFactory(protocol.ReconnectingClientFactory, MapbotSourceFactory):
    protocol = Ircbot

    port = IntOption('port', 'Server port number', 6667)
    ssl = BoolOption('ssl', 'Use SSL', False)
    server = Option('server', 'Server hostname')
    nick = Option('nick', 'IRC nick')
    modes = Option('modes', 'User modes to set')
    channels = ListOption('channels', 'Channels to autojoin', [])
    ping_interval = FloatOption('ping_interval', 'Seconds idle before sending a PING', 60)
    pong_timeout = FloatOption('pong_timeout', 'Seconds to wait for PONG', 300)
    # ReconnectingClient uses this:
    maxDelay = IntOption('max_delay', 'Max seconds to wait inbetween reconnects', 900)
    factor = FloatOption('delay_factor', 'Factor to multiply delay inbetween reconnects by', 2)

    def __init__(self, name):
        MapbotSourceFactory.__init__(self, name)
        self.log = logging.getLogger('source.%s' % self.name)

    def setServiceParent(self, service):
        if self.ssl:
            sslctx = ssl.ClientContextFactory()
            if service:
                internet.SSLClient(self.server, self.port, self, sslctx).setServiceParent(service)
            else:
                reactor.connectSSL(self.server, self.port, self, sslctx)
        else:
            if service:
                internet.TCPClient(self.server, self.port, self).setServiceParent(service)
            else:
                reactor.connectTCP(self.server, self.port, self)

    def disconnect(self):
        self.stopTrying()
        self.stopFactory()
        if hasattr(self, 'proto'):
            self.proto.transport.loseConnection()
        return True

    def url(self):
        return 'irc://%s@%s:%s' % (self.nick, self.server, self.port)

# vi: set et sta sw=4 ts=4:
