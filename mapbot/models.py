# Copyright (c) 2009-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from sqlalchemy import Table, Column, ForeignKey, UniqueConstraint, \
                       Integer, Boolean, Unicode, MetaData
from sqlalchemy.orm import declarative_base, relationship

metadata = MetaData()
Base = declarative_base(metadata=metadata)

class Netmask(Base):
    __table__ = Table('netmasks', Base.metadata,
        Column('id', Integer, primary_key=True),
        Column('account_id', Integer, ForeignKey('accounts.id'),
               nullable=False, index=True),
        Column('mask', Unicode(255), nullable=False),
        UniqueConstraint('account_id', 'mask'),
        extend_existing=True)

    def __init__(self, mask):
        self.mask = mask

    def __repr__(self):
        return '<Netmask %s>' % self.mask

class Permission(Base):
    __table__ = Table('permissions', Base.metadata,
        Column('id', Integer, primary_key=True),
        Column('account_id', Integer, ForeignKey('accounts.id'),
               nullable=False, index=True),
        Column('location', Unicode(64), nullable=False),
        Column('name', Unicode(255), nullable=False, index=True),
        Column('value', Boolean, nullable=False),
        UniqueConstraint('account_id', 'location', 'name'),
        extend_existing=True)

    def __init__(self, name, value, location='*'):
        self.name = name
        self.value = value
        self.location = location

    def __repr__(self):
        return '<Permission %s%s on %s>' % (self.value and '+' or '-',
                self.name or '*', self.location)

class Account(Base):
    __table__ = Table('accounts', Base.metadata,
        Column('id', Integer, primary_key=True),
        Column('username', Unicode(32), unique=True, nullable=False,
               index=True),
        Column('password', Unicode(64)),
        extend_existing=True)

    netmasks = relationship(Netmask, cascade='all, delete-orphan')
    permissions = relationship(Permission, cascade='all, delete-orphan')

    def __init__(self, username, password=None):
        self.username = username
        self.password = password

    def update_from(self, botuser):
        "Copy the state of a BotUser into this account"
        self.password = botuser.password

        masks = set(botuser.netmasks)
        for netmask in list(self.netmasks):
            if netmask.mask not in masks:
                self.netmasks.remove(netmask)
        known = set(n.mask for n in self.netmasks)
        for mask in botuser.netmasks:
            if mask not in known:
                self.netmasks.append(Netmask(mask))

        wanted = {}
        for location, permset in botuser.permissions.items():
            for name, value in permset.permissions.items():
                wanted[(location, name)] = value
        for permission in list(self.permissions):
            key = (permission.location, permission.name)
            if key not in wanted:
                self.permissions.remove(permission)
            else:
                permission.value = wanted.pop(key)
        for (location, name), value in wanted.items():
            self.permissions.append(Permission(name, value, location))

    def to_botuser(self):
        from mapbot.auth import BotUser

        botuser = BotUser(self.username, self.password)
        for netmask in self.netmasks:
            botuser.add_netmask(netmask.mask)
        for permission in self.permissions:
            botuser.set_permission(permission.name, permission.value,
                                   permission.location)
        return botuser

    def __repr__(self):
        return '<Account %s>' % self.username

# vi: set et sta sw=4 ts=4:
