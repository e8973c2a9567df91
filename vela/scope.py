import logging
from collections import namedtuple
from contextlib import contextmanager

from vela.errors import TemplateError

__all__ = ["MISSING", "MacroDefinition", "MacroTable", "Scope", "ScopeManager"]

LOG = logging.getLogger(__name__)


class _Missing(object):
    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False


MISSING = _Missing()

GLOBAL = "global"
FOREACH = "foreach"
MACRO = "macro"


class Scope(dict):
    def __init__(self, parent=None, kind=GLOBAL):
        dict.__init__(self)
        self.parent = parent
        self.kind = kind
        self.depth = 0 if parent is None else parent.depth + 1

    def __repr__(self):
        return "%s%s->%r" % (self.kind, dict.__repr__(self), self.parent)


class ScopeManager(object):
    """A stack of variable scopes bottoming out at one global scope.

    The global scope reads through to the caller's namespace, which is
    never written to.
    """

    def __init__(self, namespace=None):
        self.namespace = namespace if namespace is not None else {}
        self.global_scope = Scope()
        self.current = self.global_scope

    def push_scope(self, kind=FOREACH):
        self.current = Scope(self.current, kind)
        return self.current

    def pop_scope(self):
        if self.current.parent is None:
            raise TemplateError("cannot pop the global scope")
        scope, self.current = self.current, self.current.parent
        return scope

    @contextmanager
    def scoped(self, kind=FOREACH):
        scope = self.push_scope(kind)
        try:
            yield scope
        finally:
            while self.current is not scope.parent:
                self.pop_scope()

    def set_variable(self, name, value):
        self.current[name] = value

    def get_variable(self, name):
        scope = self.current
        while scope is not None:
            if name in scope:
                return scope[name]
            scope = scope.parent
        try:
            return self.namespace[name]
        except (KeyError, TypeError):
            return MISSING

    def has_variable(self, name):
        return self.get_variable(name) is not MISSING

    @property
    def depth(self):
        return self.current.depth


MacroDefinition = namedtuple("MacroDefinition", "name parameters body")


class MacroTable(object):
    """The flat, per-render table of macro definitions."""

    def __init__(self, replace_allowed=False):
        self.replace_allowed = replace_allowed
        self.macros = {}

    def define(self, name, parameters, body):
        key = name.lower()
        if key in self.macros and not self.replace_allowed:
            LOG.debug("macro #%s already defined, keeping the first definition", name)
            return self.macros[key]
        macro = MacroDefinition(name, tuple(parameters), body)
        self.macros[key] = macro
        return macro

    def get(self, name):
        return self.macros.get(name.lower())

    def __contains__(self, name):
        return name.lower() in self.macros

    def __len__(self):
        return len(self.macros)
