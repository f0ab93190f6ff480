# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging

import mapbot
from mapbot import AuthException
from mapbot.auth import PRIVATE, EVERYWHERE
from mapbot.plugins import BotModule, map
from mapbot.utils import human_join

log = logging.getLogger('plugins.auth')

def _location(params):
    location = params.get('location', EVERYWHERE)
    if location.lower() in ('private', 'query'):
        return PRIVATE
    return location

class Identify(BotModule):
    """login <username> <password>
    logout
    whoami"""

    @map('login :username :password', public=False)
    def login(self, message, params):
        try:
            result = mapbot.auth.login(message.actor, params['username'],
                                       params['password'])
        except AuthException as e:
            message.addresponse(str(e))
            return

        if result:
            message.addresponse('You are now logged in as %s', params['username'])
        else:
            message.addresponse('Authentication failed')

    @map('logout')
    def logout(self, message, params):
        if mapbot.auth.logout(message.actor):
            message.addresponse('You are logged out')
        else:
            message.addresponse("You weren't logged in")

    @map('whoami')
    def whoami(self, message, params):
        botuser = mapbot.auth.botuser(message.actor)
        if botuser is mapbot.auth.everyone:
            message.addresponse("I don't know who you are")
        else:
            message.addresponse('You are %s', botuser.username)

class Users(BotModule):
    """useradd <username> [<password>]
    userdel <username>
    users"""

    auth_fallback = False

    def register(self, dispatcher):
        BotModule.register(self, dispatcher)
        self.default_auth('edit', False)

    @map('useradd :username [:password]', auth_path='edit')
    def useradd(self, message, params):
        try:
            botuser = mapbot.auth.create_botuser(params['username'],
                                                 params.get('password'))
        except AuthException as e:
            message.addresponse(str(e))
            return
        log.info('Created botuser %s for %s', botuser.username, message.actor)
        message.addresponse('Created botuser %s', botuser.username)

    @map('userdel :username', auth_path='edit')
    def userdel(self, message, params):
        try:
            mapbot.auth.remove_botuser(params['username'])
        except AuthException as e:
            message.addresponse(str(e))
            return
        message.addresponse('Removed botuser %s', params['username'])

    @map('users', auth_path='edit')
    def users(self, message, params):
        names = sorted(mapbot.auth.botusers)
        message.addresponse('Bot users: %s', human_join(names) or 'none')

class Permissions(BotModule):
    """permission (grant|revoke) <path> (to|from) <username> [in <channel>]
    permission reset <path> for <username> [in <channel>]
    permissions [for <username>]
    auth save"""

    auth_fallback = False

    def register(self, dispatcher):
        BotModule.register(self, dispatcher)
        self.default_auth('edit', False)

    @map('permission grant :path to :username [in :location]', auth_path='edit')
    def grant(self, message, params):
        self._set(message, params, True)

    @map('permission revoke :path from :username [in :location]', auth_path='edit')
    def revoke(self, message, params):
        self._set(message, params, False)

    def _set(self, message, params, allow):
        try:
            mapbot.auth.set_permission(params['username'], params['path'],
                                       allow, _location(params))
        except AuthException as e:
            message.addresponse(str(e))
            return
        message.addresponse('Okay')

    @map('permission reset :path for :username [in :location]', auth_path='edit')
    def reset(self, message, params):
        try:
            mapbot.auth.reset_permission(params['username'], params['path'],
                                         _location(params))
        except AuthException as e:
            message.addresponse(str(e))
            return
        message.addresponse('Okay')

    @map('permissions [for :username]', auth_fallback=True)
    def permissions(self, message, params):
        if 'username' in params:
            try:
                botuser = mapbot.auth.get_botuser(params['username'])
            except AuthException as e:
                message.addresponse(str(e))
                return
        else:
            botuser = mapbot.auth.botuser(message.actor)

        entries = []
        for location in sorted(botuser.permissions):
            for name, value in sorted(botuser.permissions[location].permissions.items()):
                entries.append('%s%s%s' % (value and '+' or '-', name or '*',
                        location != EVERYWHERE and ' in %s' % location or ''))

        message.addresponse('Permissions for %(user)s: %(permissions)s', {
            'user': botuser.username,
            'permissions': human_join(entries) or 'none',
        })

    @map('auth save', auth_path='edit', threaded=True)
    def save(self, message, params):
        if not mapbot.databases or 'mapbot' not in mapbot.databases:
            message.addresponse("I don't have a database to save to")
            return
        session = mapbot.databases.mapbot()
        try:
            mapbot.auth.save(session)
        finally:
            session.close()
        message.addresponse('Saved %i bot users', len(mapbot.auth.botusers))

# vi: set et sta sw=4 ts=4:
