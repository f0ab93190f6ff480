# Copyright (c) 2008-2010, Michael Gorven, Stefano Rivera, Max Rabkin
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import mapbot
from mapbot.config import BoolOption
from mapbot.plugins import BotModule, map
from mapbot.utils import human_join, plural

class Help(BotModule):
    """help
    help <module|command>"""

    show_auth = BoolOption('show_auth', 'Show the auth path of each command', False)

    def _modules(self):
        modules = {}
        for template in mapbot.dispatcher.templates:
            modules.setdefault(template.module, []).append(template)
        return modules

    def _usage(self, template):
        if self.show_auth:
            return '%s (%s)' % (template.pattern, template.auth_path)
        return template.pattern

    @map('help')
    def intro(self, message, params):
        modules = sorted(name for name in self._modules() if name)
        message.addresponse('I have %(count)i %(modules)s loaded: %(names)s. '
                'Ask me "help <module>" for its commands.', {
            'count': len(modules),
            'modules': plural(len(modules), 'module', 'modules'),
            'names': human_join(modules) or 'none',
        })

    @map('help *topic')
    def describe(self, message, params):
        topic = [word.lower() for word in params['topic']]
        modules = self._modules()

        if len(topic) == 1 and topic[0] in modules:
            templates = modules[topic[0]]
        else:
            templates = []
            for template in mapbot.dispatcher.templates:
                literals = [word.lower() for word in template.literal_tokens]
                if literals[:len(topic)] == topic:
                    templates.append(template)

        if not templates:
            message.addresponse("I'm afraid I don't know what you are asking "
                    'about. Ask "help" to see my modules.')
            return

        message.addresponse('Usage: %s', human_join(
                (self._usage(t) for t in templates), separator=';',
                conjunction='or'))

# vi: set et sta sw=4 ts=4:
