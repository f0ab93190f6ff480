# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

import logging

log = logging.getLogger('core.matcher')

class Failure(object):
    "Why a template did not recognise a message"

    text = 'template %(template)s failed to recognise %(message)r'
    friendly = 'I failed to understand the command'

    def __init__(self, template, tokens):
        self.template = template
        self.tokens = tokens

    def __str__(self):
        return self.text % {
            'template': self.template.pattern,
            'message': ' '.join(self.tokens),
            'action': getattr(self.template.action, '__name__', None),
        }

    def __repr__(self):
        return '<%s %s>' % (self.__class__.__name__, self)

class NoMatchFailure(Failure):
    text = '%(message)r does not match %(template)s'

class RequirementFailure(Failure):
    text = '%(message)r matches %(template)s but fails its requirements'

    def __init__(self, template, tokens):
        Failure.__init__(self, template, tokens)
        self.friendly = '; '.join(template.requirements_for(name)
                for name in sorted(template.requirements))

class NotPrivateFailure(Failure):
    text = 'template %(template)s is not configured for private messages'
    friendly = 'the command must not be given in private'

class NotPublicFailure(Failure):
    text = 'template %(template)s is not configured for public messages'
    friendly = 'the command must not be given in public'

class MatchResult(object):
    """Outcome of matching a message against a set of templates.

    On success template and params are set. failures always lists, in
    order, the templates that were tried and rejected.
    """

    def __init__(self, template=None, params=None, failures=None):
        self.template = template
        self.params = params
        self.failures = failures or []

    @property
    def matched(self):
        return self.template is not None

    def __bool__(self):
        return self.matched

    def __repr__(self):
        if self.matched:
            return '<MatchResult %r %r>' % (self.template, self.params)
        return '<MatchResult no match, %i failures>' % len(self.failures)

def recognise(template, tokens, message=None):
    "Return the bindings of template for tokens, or a Failure"
    params = template.try_match(tokens)
    if params is None:
        if template.requirements and template.try_match(tokens,
                check_requirements=False) is not None:
            return RequirementFailure(template, tokens)
        return NoMatchFailure(template, tokens)

    if message is not None:
        if not template.private and not message.public:
            return NotPrivateFailure(template, tokens)
        if not template.public and message.public:
            return NotPublicFailure(template, tokens)

    return params

def resolve(tokens, templates, message=None):
    """Find the first template, in registration order, recognising tokens.

    Requirement rejections are soft: later templates are still tried.
    """
    tokens = list(tokens)
    failures = []
    if not tokens:
        return MatchResult()

    for template in templates:
        result = recognise(template, tokens, message)
        if isinstance(result, Failure):
            failures.append(result)
            continue
        log.debug('%r matched %r with %r', tokens, template, result)
        return MatchResult(template, result, failures)

    for failure in failures:
        log.log(logging.DEBUG - 5, '%r => %s', failure.template, failure)
    return MatchResult(failures=failures)

# vi: set et sta sw=4 ts=4:
