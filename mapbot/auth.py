# Copyright (c) 2008-2009, Michael Gorven
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from fnmatch import fnmatchcase
from random import choice
from threading import Lock
import hashlib
import logging
import re
import string

from mapbot import AuthException

log = logging.getLogger('core.auth')

PRIVATE = '?'
EVERYWHERE = '*'

def hash(password, salt=None):
    if salt:
        salt = salt[:8]
    else:
        chars = string.ascii_letters + string.digits
        salt = ''.join([choice(chars) for i in range(8)])
    return salt + hashlib.sha1((salt + password).encode('utf-8')).hexdigest()

def location_key(location):
    "Permission table key for a channel, or ? for private messages"
    if not location:
        return PRIVATE
    return location.lower()

class Command(object):
    """A permission path, such as ``quiz::edit::reset``.

    path holds every prefix from the root ('') to the full command, so
    lookups can walk from the most specific entry to the least.
    """

    _valid = re.compile(r'^\S+(::\S+)*$')

    def __init__(self, cmd):
        command = self.sanitize(cmd)
        path = ['']
        if command:
            for part in command.split('::'):
                path.append(path[-1] and path[-1] + '::' + part or part)
        self.path = path
        self.command = path[-1]

    @classmethod
    def sanitize(cls, cmd):
        cmd = str(cmd or '').strip().lower()
        cmd = re.sub(r'^\*?(?:::)?', '', cmd)
        cmd = re.sub(r'::$', '', cmd)
        if cmd and not cls._valid.match(cmd):
            raise AuthException('%r is not a valid command path' % cmd)
        return cmd

    def __str__(self):
        return self.command or '*'

    def __repr__(self):
        return '<Command %s>' % self

class PermissionSet(object):
    "Explicit allow/deny entries, keyed by command path"

    def __init__(self, permissions=None):
        self.permissions = dict(permissions or {})

    def set_permission(self, cmd, value):
        if value not in (True, False):
            raise AuthException('%r must be True or False' % (value,))
        permissions = dict(self.permissions)
        permissions[Command(cmd).command] = value
        self.permissions = permissions

    def reset_permission(self, cmd):
        command = Command(cmd).command
        if command in self.permissions:
            permissions = dict(self.permissions)
            del permissions[command]
            self.permissions = permissions

    def allow(self, cmd):
        "True or False from the deepest matching entry, None if none match"
        permissions = self.permissions
        for key in reversed(cmd.path):
            if key in permissions:
                return permissions[key]
        return None

    def __len__(self):
        return len(self.permissions)

class BotUser(object):

    def __init__(self, username, password=None):
        self.username = self.sanitize_username(username)
        self.password = password
        self.netmasks = []
        self.permissions = {}

    @staticmethod
    def sanitize_username(name):
        return re.sub(r'[^a-z0-9]', '_', str(name).strip().lower())

    def set_password(self, password):
        if not re.match(r'^[A-Za-z0-9]{4,}$', password):
            raise AuthException('Passwords must be at least 4 alphanumeric characters')
        self.password = hash(password)

    def check_password(self, password):
        if not self.password or password is None:
            return False
        return hash(password, self.password) == self.password

    def add_netmask(self, mask):
        if mask.lower() not in [m.lower() for m in self.netmasks]:
            self.netmasks = self.netmasks + [mask]

    def remove_netmask(self, mask):
        self.netmasks = [m for m in self.netmasks if m.lower() != mask.lower()]

    def knows(self, actor):
        actor = actor.lower()
        for mask in self.netmasks:
            if fnmatchcase(actor, mask.lower()):
                return True
        return False

    def set_permission(self, cmd, value, location=EVERYWHERE):
        key = location_key(location)
        permissions = dict(self.permissions)
        permset = PermissionSet(permissions.get(key, PermissionSet()).permissions)
        permset.set_permission(cmd, value)
        permissions[key] = permset
        self.permissions = permissions

    def reset_permission(self, cmd, location=EVERYWHERE):
        key = location_key(location)
        if key in self.permissions:
            permissions = dict(self.permissions)
            permset = PermissionSet(permissions[key].permissions)
            permset.reset_permission(cmd)
            permissions[key] = permset
            self.permissions = permissions

    def allow(self, cmd, location=EVERYWHERE):
        permset = self.permissions.get(location)
        if permset is None:
            return None
        return permset.allow(cmd)

    def __repr__(self):
        return '<BotUser %s>' % self.username

class BotOwner(BotUser):
    "The owner may do anything"

    def allow(self, cmd, location=EVERYWHERE):
        return True

class Auth(object):
    """Maps actors onto bot users and decides permissions.

    A permission check stops at the first scope holding an entry for the
    command: the actor's bot user on the location, then on all locations,
    then the default bot user (everyone) on the location and on all
    locations. The caller's fallback decides when no scope does.

    Tables are replaced rather than mutated, under a single writer lock,
    so checks never need to lock.
    """

    def __init__(self, permissions=(), owner_password=None, owner_masks=()):
        self.log = log
        self.lock = Lock()
        self.everyone = BotUser('everyone')
        self.owner = BotOwner('owner')
        for mask in owner_masks:
            self.owner.add_netmask(mask)
        if owner_password:
            self.owner.set_password(owner_password)
        self.botusers = {}
        self.logins = {}
        self.configured = set()

        for permission in permissions:
            match = re.match(r'^([+-]?)(\S+)$', permission.strip())
            if not match:
                self.log.warning('Ignoring malformed permission %r', permission)
                continue
            self.everyone.set_permission(match.group(2), match.group(1) != '-')
            self.configured.add(Command(match.group(2)).command)

    def get_botuser(self, username):
        username = BotUser.sanitize_username(username)
        if username == self.owner.username:
            return self.owner
        if username == self.everyone.username:
            return self.everyone
        if username not in self.botusers:
            raise AuthException("I don't know any %s" % username)
        return self.botusers[username]

    def botuser(self, actor):
        "The BotUser an actor is acting as"
        if actor is None:
            return self.everyone
        key = actor.lower()
        logins = self.logins
        if key in logins:
            return self.get_botuser(logins[key])
        if self.owner.knows(actor):
            return self.owner
        for botuser in self.botusers.values():
            if botuser.knows(actor):
                return botuser
        return self.everyone

    def permitted(self, actor, location, path, fallback=False):
        "Check if actor may run the command at path in location"
        cmd = Command(path)
        botuser = self.botuser(actor)
        key = location_key(location)

        scopes = [(botuser, key), (botuser, EVERYWHERE)]
        if botuser is not self.everyone:
            scopes += [(self.everyone, key), (self.everyone, EVERYWHERE)]

        for user, scope in scopes:
            value = user.allow(cmd, scope)
            if value is not None:
                self.log.debug('Checking %s permission for %s (%s) in %s: %s from %s on %s',
                        cmd, actor, botuser.username, key, value,
                        user.username, scope)
                return value

        self.log.debug('Checking %s permission for %s (%s) in %s: %s by fallback',
                cmd, actor, botuser.username, key, fallback)
        return bool(fallback)

    def register_default(self, path, allow, location=EVERYWHERE):
        """Set the baseline permission for path. Entries from the
        configuration file take precedence over module defaults.
        """
        if location == EVERYWHERE and Command(path).command in self.configured:
            self.log.debug('Keeping configured permission for %s', Command(path))
            return
        with self.lock:
            self.everyone.set_permission(path, bool(allow), location)
        self.log.debug('Default permission for %s on %s is now %s',
                Command(path), location, allow)

    def create_botuser(self, username, password=None):
        with self.lock:
            botuser = BotUser(username)
            if botuser.username in (self.owner.username, self.everyone.username) \
                    or botuser.username in self.botusers:
                raise AuthException('BotUser %s exists' % botuser.username)
            if password:
                botuser.set_password(password)
            botusers = dict(self.botusers)
            botusers[botuser.username] = botuser
            self.botusers = botusers
        self.log.info('Created botuser %s', botuser.username)
        return botuser

    def remove_botuser(self, username):
        with self.lock:
            botuser = self.get_botuser(username)
            if botuser in (self.owner, self.everyone):
                raise AuthException("Can't remove %s" % botuser.username)
            botusers = dict(self.botusers)
            del botusers[botuser.username]
            self.botusers = botusers
            self.logins = dict((k, v) for k, v in self.logins.items()
                               if v != botuser.username)
        self.log.info('Removed botuser %s', botuser.username)

    def login(self, actor, username, password):
        """Log actor in as username. On success the actor's netmask is
        remembered, so the next session is recognised automatically.
        """
        botuser = self.get_botuser(username)
        if botuser is self.everyone or not botuser.check_password(password):
            self.log.info('Login of %s as %s failed', actor, botuser.username)
            return False

        with self.lock:
            botuser.add_netmask(actor)
            logins = dict(self.logins)
            logins[actor.lower()] = botuser.username
            self.logins = logins
        self.log.info('Logged %s in as %s', actor, botuser.username)
        return True

    def logout(self, actor):
        with self.lock:
            botuser = self.botuser(actor)
            if botuser is not self.everyone:
                botuser.remove_netmask(actor)
            logins = dict(self.logins)
            logins.pop(actor.lower(), None)
            self.logins = logins
        return botuser is not self.everyone

    def set_permission(self, username, path, allow, location=EVERYWHERE):
        with self.lock:
            self.get_botuser(username).set_permission(path, bool(allow), location)
        self.log.info('Set %s permission for %s on %s to %s',
                Command(path), username, location, allow)

    def reset_permission(self, username, path, location=EVERYWHERE):
        with self.lock:
            self.get_botuser(username).reset_permission(path, location)
        self.log.info('Reset %s permission for %s on %s',
                Command(path), username, location)

    def save(self, session):
        "Write bot users and their permissions to the database"
        from mapbot.models import Account

        with self.lock:
            botusers = dict(self.botusers)

        for account in session.query(Account).all():
            if account.username not in botusers:
                session.delete(account)

        for botuser in botusers.values():
            account = session.query(Account) \
                    .filter_by(username=botuser.username).first()
            if account is None:
                account = Account(botuser.username)
                session.add(account)
            account.update_from(botuser)

        session.commit()
        self.log.info('Saved %i botusers', len(botusers))

    def load(self, session):
        "Replace bot users with those stored in the database"
        from mapbot.models import Account

        botusers = {}
        for account in session.query(Account).all():
            botuser = account.to_botuser()
            botusers[botuser.username] = botuser

        with self.lock:
            self.botusers = botusers
            self.logins = {}
        self.log.info('Loaded %i botusers', len(botusers))

# vi: set et sta sw=4 ts=4:
