# Copyright (c) 2008-2009, Michael Gorven
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging
import pkgutil

from configobj import ConfigObj
from validate import Validator

import mapbot
from mapbot import ConfigException

def monkeypatch(self, name):
    if name in self:
        return self[name]
    raise AttributeError(name)

ConfigObj.__getattr__ = monkeypatch

def FileConfig(filename):
    spec = pkgutil.get_data('mapbot', 'configspec.ini').decode('utf-8')
    configspec = ConfigObj(spec.splitlines(), list_values=False,
                           encoding='utf-8', _inspec=True)
    config = ConfigObj(filename, configspec=configspec,
                       interpolation='Template', encoding='utf-8')
    result = config.validate(Validator())
    if result is not True:
        raise ConfigException('Invalid configuration in %s: %r'
                % (filename, result))
    logging.getLogger('core.config').info('Loaded configuration from %s', filename)
    return config

def section(name):
    "A section of the loaded configuration, or an empty dict"
    config = mapbot.config
    # Until setup() runs, mapbot.config may still be this module
    if not isinstance(config, dict):
        return {}
    if name in config and config[name] is not None:
        return config[name]
    return {}

class Option(object):
    accessor = None

    def __init__(self, name, description, default=None):
        self.name = name
        self.default = default
        self.description = description

    def __get__(self, instance, owner):
        if instance is None:
            return self.default

        config = section(getattr(owner, 'config_section', 'plugins'))
        if instance.name in config and self.name in config[instance.name]:
            value = config[instance.name][self.name]
            if self.accessor is not None and hasattr(config[instance.name], self.accessor):
                return getattr(config[instance.name], self.accessor)(self.name)
            return self.convert(value)
        return self.default

    def convert(self, value):
        return value

class BoolOption(Option):
    accessor = 'as_bool'

    def convert(self, value):
        if isinstance(value, str):
            return value.lower() in ('1', 'yes', 'true', 'on')
        return bool(value)

class IntOption(Option):
    accessor = 'as_int'

    def convert(self, value):
        return int(value)

class FloatOption(Option):
    accessor = 'as_float'

    def convert(self, value):
        return float(value)

class ListOption(Option):

    def __get__(self, instance, owner):
        value = Option.__get__(self, instance, owner)
        if not isinstance(value, (list, tuple)):
            value = [value]

        if value and not value[0] and self.default:
            both = []
            both.extend(self.default)
            both.extend(value[1:])
            value = both

        return value

# vi: set et sta sw=4 ts=4:
