# Copyright (c) 2008-2011, Michael Gorven, Stefano Rivera
# Released under terms of the MIT/X/Expat Licence. See COPYING for details.

"""Command templates.

A template such as ``'remind :who *what'`` is compiled once, when a bot
module registers it, into a small arena of nodes:

* literal words, which must match a message token exactly (ignoring case)
* ``:name`` parameters, which bind a single token
* ``*name`` parameters, which bind one or more tokens, as few as allow the
  rest of the template to match
* ``[...]`` groups, which are optional and may nest

Groups refer to their children by index into ``Template.nodes``; the root
group is always node 0.
"""

import logging
import re

from mapbot import CompileError

log = logging.getLogger('core.template')

LITERAL = 'literal'
PARAMETER = 'parameter'
GROUP = 'group'

_pattern_token = re.compile(r'\[|\]|[^\s\[\]]+')
_parameter = re.compile(r'^([:*])(\w+)(.*)$')

class Node(object):
    kind = None

class Literal(Node):
    kind = LITERAL

    def __init__(self, text):
        self.text = text
        self.folded = text.lower()

    def __repr__(self):
        return self.text

class Parameter(Node):
    kind = PARAMETER

    def __init__(self, name, multi=False, optional=False, suffix=''):
        self.name = name
        self.multi = multi
        self.optional = optional
        self.suffix = suffix

    def __repr__(self):
        return '%s%s%s' % (self.multi and '*' or ':', self.name, self.suffix)

class Group(Node):
    kind = GROUP

    def __init__(self, optional=True):
        self.children = ()
        self.optional = optional

def _requirement(pattern):
    if isinstance(pattern, str):
        return re.compile(pattern)
    if hasattr(pattern, 'fullmatch'):
        return pattern
    return re.compile(re.escape(str(pattern)))

class Template(object):
    """A compiled command pattern bound to an action.

    ``requirements`` maps parameter names to regular expressions that the
    whole bound value must match. If a requirement has capture groups, the
    first non-empty group becomes the parameter value. ``defaults`` makes a
    parameter optional and supplies its value when it is absent.
    """

    def __init__(self, pattern, action=None, module=None, auth_path=None,
                 requirements=None, defaults=None, threaded=False,
                 public=True, private=True, auth_fallback=True):
        if not isinstance(pattern, str):
            raise CompileError(pattern, 'template must be a string')

        self.pattern = pattern
        self.action = action
        self.module = module
        self.threaded = threaded
        self.public = public
        self.private = private
        self.auth_fallback = auth_fallback
        self.defaults = dict(defaults or {})
        self.requirements = dict((name, _requirement(req))
                for name, req in (requirements or {}).items())

        self.nodes = []
        self._parse(pattern)

        names = set(p.name for p in self.parameters)
        for option in ('requirements', 'defaults'):
            for name in getattr(self, option):
                if name not in names:
                    raise CompileError(pattern,
                            '%s names unknown parameter %s' % (option, name))

        self.auth_path = self._full_auth_path(auth_path)
        log.debug('Template %r in %s will use auth path %s',
                pattern, module, self.auth_path)

    def _add(self, node):
        self.nodes.append(node)
        return len(self.nodes) - 1

    def _parse(self, pattern):
        tokens = _pattern_token.findall(pattern)
        if not tokens:
            raise CompileError(pattern, 'empty template')

        stack = [(self._add(Group(optional=False)), [])]
        seen = set()

        for token in tokens:
            if token == '[':
                stack.append((self._add(Group()), []))
            elif token == ']':
                if len(stack) == 1:
                    raise CompileError(pattern, 'unbalanced ]')
                index, children = stack.pop()
                if not children:
                    raise CompileError(pattern, 'empty optional group')
                self.nodes[index].children = tuple(children)
                stack[-1][1].append(index)
            else:
                match = _parameter.match(token)
                if match:
                    sigil, name, suffix = match.groups()
                    if name in seen:
                        raise CompileError(pattern,
                                'duplicate parameter %s' % name)
                    seen.add(name)
                    stack[-1][1].append(self._add(Parameter(name,
                            multi=(sigil == '*'),
                            optional=(name in self.defaults),
                            suffix=suffix)))
                else:
                    stack[-1][1].append(self._add(Literal(token)))

        if len(stack) > 1:
            raise CompileError(pattern, 'unbalanced [')

        index, children = stack[0]
        self.nodes[index].children = tuple(children)

        for node in self.nodes:
            if node.kind != GROUP:
                continue
            for current, following in zip(node.children, node.children[1:]):
                current, following = self.nodes[current], self.nodes[following]
                if (current.kind == PARAMETER and current.multi
                        and following.kind == PARAMETER):
                    raise CompileError(pattern,
                            'greedy parameter *%s must be last in its segment'
                            % current.name)

    @property
    def root(self):
        return self.nodes[0]

    @property
    def literal_tokens(self):
        return [node.text for node in self.nodes if node.kind == LITERAL]

    @property
    def command(self):
        "The first literal outside optional groups, or the module name"
        for i in self.root.children:
            if self.nodes[i].kind == LITERAL:
                return self.nodes[i].text
        return self.module

    @property
    def parameters(self):
        return [node for node in self.nodes if node.kind == PARAMETER]

    def _full_auth_path(self, extra):
        pre = self.module
        words = [self.nodes[i].text for i in self.root.children
                 if self.nodes[i].kind == LITERAL
                 and self.nodes[i].text != self.module]
        post = words and words[0] or None

        if extra is not None:
            if extra.startswith(':'):
                extra = extra[1:]
                if post:
                    pre = '::'.join(filter(None, (pre, post)))
                post = None
            if extra.endswith(':'):
                extra = extra[:-1]
                if len(words) > 1:
                    post = '::'.join(filter(None, (post, words[1])))
            if extra.startswith('!'):
                extra = extra[1:]
                pre = None
            if extra.endswith('!'):
                extra = extra[:-1]
                post = None

        return '::'.join(part for part in (pre, extra, post) if part)

    def skeleton(self):
        "Signature of literals, parameter arity and requirements"
        def walk(index):
            node = self.nodes[index]
            if node.kind == LITERAL:
                return (LITERAL, node.folded)
            if node.kind == PARAMETER:
                requirement = self.requirements.get(node.name)
                return (PARAMETER, node.multi, node.optional, node.suffix,
                        requirement is not None and requirement.pattern or None)
            return (GROUP, node.optional,
                    tuple(walk(child) for child in node.children))
        return (walk(0), self.public, self.private)

    def _bind(self, node, words, check):
        if node.suffix:
            last = words[-1]
            if (len(last) <= len(node.suffix)
                    or not last.lower().endswith(node.suffix.lower())):
                return None
            words = words[:-1] + [last[:-len(node.suffix)]]

        if node.multi:
            value = list(words)
        else:
            value = words[0]

        if check and node.name in self.requirements:
            requirement = self.requirements[node.name]
            text = node.multi and ' '.join(value) or value
            match = requirement.fullmatch(text)
            if match is None:
                return None
            if requirement.groups and not node.multi:
                collected = [g for g in match.groups() if g]
                if collected:
                    value = collected[0]

        return value

    def _walk(self, sequence, pos, tokens, check):
        """Yield (position, bindings, literals) for every way the node
        sequence can consume tokens starting at pos.
        """
        if not sequence:
            yield pos, {}, 0
            return

        node = self.nodes[sequence[0]]
        rest = sequence[1:]

        if node.kind == LITERAL:
            if pos < len(tokens) and tokens[pos].lower() == node.folded:
                for end, bound, literals in self._walk(rest, pos + 1, tokens, check):
                    yield end, bound, literals + 1

        elif node.kind == PARAMETER:
            if node.multi:
                spans = range(1, len(tokens) - pos + 1)
            else:
                spans = pos < len(tokens) and (1,) or ()
            for span in spans:
                value = self._bind(node, tokens[pos:pos + span], check)
                if value is None:
                    continue
                for end, bound, literals in self._walk(rest, pos + span, tokens, check):
                    bound = dict(bound)
                    bound[node.name] = value
                    yield end, bound, literals
            if node.optional:
                for result in self._walk(rest, pos, tokens, check):
                    yield result

        else:
            for result in self._walk(node.children + rest, pos, tokens, check):
                yield result
            if node.optional:
                for result in self._walk(rest, pos, tokens, check):
                    yield result

    def try_match(self, tokens, check_requirements=True):
        """Align tokens against the template.

        Returns a dict of parameter bindings, or None. Of all complete
        alignments, the one consuming the most literal words wins; ties go
        to the first found, which prefers optional parts being present.
        """
        tokens = list(tokens)
        best = None
        for end, bound, literals in self._walk(self.root.children, 0,
                                               tokens, check_requirements):
            if end != len(tokens):
                continue
            if best is None or literals > best[1]:
                best = (bound, literals)

        if best is None:
            return None

        params = {}
        for node in self.parameters:
            if node.name not in self.defaults:
                continue
            default = self.defaults[node.name]
            if node.multi:
                if isinstance(default, str):
                    default = default.split()
                elif default:
                    default = list(default)
                else:
                    default = []
            params[node.name] = default
        params.update(best[0])

        return dict((k, v) for k, v in params.items() if v is not None)

    def requirements_for(self, name):
        requirement = self.requirements.get(name)
        if requirement is None:
            return '%s has no requirements' % name
        return '%s must match %s' % (name, requirement.pattern)

    def __repr__(self):
        when = self.requirements and ' when %r' % dict(
                (k, v.pattern) for k, v in self.requirements.items()) or ''
        default = self.defaults and ' || %r' % self.defaults or ''
        return '<Template %r in %s%s%s>' % (self.pattern, self.module,
                default, when)

def compile(pattern, **options):
    "Compile pattern into a Template, raising CompileError"
    return Template(pattern, **options)

# vi: set et sta sw=4 ts=4:
