# Copyright (c) 2011, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from twisted.trial import unittest

import mapbot.test
from mapbot import AuthException
from mapbot.auth import Auth, BotUser, Command, PermissionSet, hash, \
        location_key

ALICE = 'alice!alice@example.com'
BOB = 'bob!bob@example.org'

class TestCommand(unittest.TestCase):

    def test_path(self):
        cmd = Command('edit::onjoin')
        self.assertEqual(cmd.path, ['', 'edit', 'edit::onjoin'])
        self.assertEqual(cmd.command, 'edit::onjoin')

    def test_root(self):
        for root in ('*', '', None, '*::'):
            self.assertEqual(Command(root).path, [''])
        self.assertEqual(str(Command('*')), '*')

    def test_star_prefix(self):
        self.assertEqual(Command('*::quiz::edit').command, 'quiz::edit')

    def test_case(self):
        self.assertEqual(Command('Quiz::Edit').command, 'quiz::edit')

    def test_invalid(self):
        self.assertRaises(AuthException, Command, 'quiz edit')

class TestPermissionSet(unittest.TestCase):

    def test_deepest_wins(self):
        permset = PermissionSet()
        permset.set_permission('edit', True)
        permset.set_permission('edit::onjoin', False)
        self.assertEqual(permset.allow(Command('edit::onjoin')), False)
        self.assertEqual(permset.allow(Command('edit::onjoin::now')), False)
        self.assertEqual(permset.allow(Command('edit::topic')), True)
        self.assertEqual(permset.allow(Command('quiz')), None)

    def test_reset(self):
        permset = PermissionSet()
        permset.set_permission('edit', True)
        permset.reset_permission('edit')
        permset.reset_permission('edit')
        self.assertEqual(permset.allow(Command('edit')), None)
        self.assertEqual(len(permset), 0)

    def test_boolean_only(self):
        self.assertRaises(AuthException, PermissionSet().set_permission,
                          'edit', 'yes')

    def test_copy_on_write(self):
        permset = PermissionSet()
        before = permset.permissions
        permset.set_permission('edit', True)
        self.assertEqual(before, {})
        self.assertNotIdentical(before, permset.permissions)

class TestBotUser(unittest.TestCase):

    def test_password(self):
        botuser = BotUser('Alice')
        self.assertEqual(botuser.username, 'alice')
        botuser.set_password('secret1')
        self.assertNotEqual(botuser.password, 'secret1')
        self.assertTrue(botuser.check_password('secret1'))
        self.assertFalse(botuser.check_password('secret2'))

    def test_short_password(self):
        self.assertRaises(AuthException, BotUser('alice').set_password, 'ab')

    def test_salted_hash(self):
        hashed = hash('secret1')
        self.assertEqual(hash('secret1', hashed), hashed)
        self.assertEqual(len(hashed), 48)

    def test_netmasks(self):
        botuser = BotUser('alice')
        botuser.add_netmask('alice!*@*.example.com')
        self.assertTrue(botuser.knows('Alice!alice@home.example.com'))
        self.assertFalse(botuser.knows('alice!alice@example.org'))

    def test_location_key(self):
        self.assertEqual(location_key(None), '?')
        self.assertEqual(location_key('#Chan'), '#chan')

class TestPermitted(unittest.TestCase):

    def setUp(self):
        self.auth = Auth(permissions=['+*', '-quiz::edit'])
        self.auth.create_botuser('alice', 'secret1')

    def test_configured(self):
        self.assertTrue(self.auth.permitted(BOB, '#chan', 'quiz::ask'))
        self.assertFalse(self.auth.permitted(BOB, '#chan', 'quiz::edit'))
        self.assertFalse(self.auth.permitted(BOB, '#chan', 'quiz::edit::reset'))

    def test_deterministic(self):
        results = [self.auth.permitted(BOB, '#chan', 'quiz::edit')
                   for i in range(3)]
        self.assertEqual(results, [False, False, False])

    def test_fallback(self):
        auth = Auth()
        self.assertFalse(auth.permitted(BOB, '#chan', 'quiz'))
        self.assertTrue(auth.permitted(BOB, '#chan', 'quiz', fallback=True))

    def test_deny_overrides_inherited_allow(self):
        auth = Auth()
        auth.register_default('edit', True)
        auth.register_default('edit::onjoin', False)
        self.assertTrue(auth.permitted(BOB, '#chan', 'edit::topic'))
        self.assertFalse(auth.permitted(BOB, '#chan', 'edit::onjoin'))

    def test_register_default_overwrites(self):
        auth = Auth()
        auth.register_default('quiz', True)
        auth.register_default('quiz', False)
        self.assertFalse(auth.permitted(BOB, '#chan', 'quiz', fallback=True))

    def test_register_default_keeps_configuration(self):
        self.auth.register_default('quiz::edit', True)
        self.assertFalse(self.auth.permitted(BOB, '#chan', 'quiz::edit'))

    def test_channel_default(self):
        auth = Auth()
        auth.register_default('quiz', False)
        auth.register_default('quiz', True, '#quiz')
        self.assertTrue(auth.permitted(BOB, '#quiz', 'quiz::ask'))
        self.assertFalse(auth.permitted(BOB, '#chan', 'quiz::ask'))

    def test_private(self):
        auth = Auth()
        auth.register_default('quiz', True, None)
        self.assertTrue(auth.permitted(BOB, None, 'quiz'))
        self.assertFalse(auth.permitted(BOB, '#chan', 'quiz'))

    def test_user_grant(self):
        self.auth.set_permission('alice', 'quiz::edit', True)
        self.assertFalse(self.auth.permitted(ALICE, '#chan', 'quiz::edit'))
        self.assertTrue(self.auth.login(ALICE, 'alice', 'secret1'))
        self.assertTrue(self.auth.permitted(ALICE, '#chan', 'quiz::edit'))
        self.assertFalse(self.auth.permitted(BOB, '#chan', 'quiz::edit'))

    def test_user_channel_before_everywhere(self):
        self.auth.set_permission('alice', 'quiz', True)
        self.auth.set_permission('alice', 'quiz', False, '#serious')
        self.auth.login(ALICE, 'alice', 'secret1')
        self.assertTrue(self.auth.permitted(ALICE, '#chan', 'quiz::edit'))
        self.assertFalse(self.auth.permitted(ALICE, '#serious', 'quiz::edit'))

    def test_user_scope_before_everyone(self):
        self.auth.set_permission('alice', 'quiz::edit', False)
        self.auth.register_default('quiz::edit::reset', True, '#chan')
        self.auth.login(ALICE, 'alice', 'secret1')
        self.assertFalse(self.auth.permitted(ALICE, '#chan', 'quiz::edit::reset'))

    def test_reset_permission(self):
        self.auth.set_permission('alice', 'quiz::edit', True)
        self.auth.reset_permission('alice', 'quiz::edit')
        self.auth.login(ALICE, 'alice', 'secret1')
        self.assertFalse(self.auth.permitted(ALICE, '#chan', 'quiz::edit'))

    def test_owner(self):
        auth = Auth(permissions=['-*'], owner_masks=['boss!*@*'])
        self.assertTrue(auth.permitted('boss!boss@example.com', '#chan', 'anything'))
        self.assertFalse(auth.permitted(BOB, '#chan', 'anything'))

class TestLogin(unittest.TestCase):

    def setUp(self):
        self.auth = Auth()
        self.auth.create_botuser('alice', 'secret1')

    def test_login(self):
        self.assertIdentical(self.auth.botuser(ALICE), self.auth.everyone)
        self.assertTrue(self.auth.login(ALICE, 'alice', 'secret1'))
        self.assertEqual(self.auth.botuser(ALICE).username, 'alice')

    def test_bad_password(self):
        self.assertFalse(self.auth.login(ALICE, 'alice', 'wrong1'))
        self.assertIdentical(self.auth.botuser(ALICE), self.auth.everyone)

    def test_unknown_user(self):
        self.assertRaises(AuthException, self.auth.login, ALICE, 'carol', 'x')

    def test_netmask_remembered(self):
        self.auth.login(ALICE, 'alice', 'secret1')
        self.auth.logins = {}
        self.assertEqual(self.auth.botuser(ALICE).username, 'alice')

    def test_logout(self):
        self.auth.login(ALICE, 'alice', 'secret1')
        self.assertTrue(self.auth.logout(ALICE))
        self.assertIdentical(self.auth.botuser(ALICE), self.auth.everyone)
        self.assertFalse(self.auth.logout(ALICE))

    def test_duplicate_botuser(self):
        self.assertRaises(AuthException, self.auth.create_botuser, 'alice')
        self.assertRaises(AuthException, self.auth.create_botuser, 'everyone')

    def test_remove_botuser(self):
        self.auth.login(ALICE, 'alice', 'secret1')
        self.auth.remove_botuser('alice')
        self.assertIdentical(self.auth.botuser(ALICE), self.auth.everyone)
        self.assertRaises(AuthException, self.auth.remove_botuser, 'everyone')

# vi: set et sta sw=4 ts=4:
