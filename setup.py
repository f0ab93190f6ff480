#!/usr/bin/env python
# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

from setuptools import setup

install_requires=[
    'configobj>=5.0',
    'pyopenssl',
    'SQLAlchemy>=1.4',
    'Twisted[tls]',
    'zope.interface',
]

setup(
    name='mapbot',
    version='0.1.0dev',
    description='IRC bot with a pattern-based command router',
    keywords='chat bot irc twisted messaging',
    author='mapbot Developers',
    license='MIT',
    install_requires=install_requires,
    packages=['mapbot', 'mapbot.plugins', 'mapbot.source', 'mapbot.test',
              'twisted.plugins'],
    package_data={
        'mapbot': ['configspec.ini'],
    },
    scripts=[
        'mapbot.tac',
    ],

    include_package_data=True,
    zip_safe=False,
)

# vi: set et sta sw=4 ts=4:
