"""The abstract syntax tree and its evaluation.

Template-level nodes implement ``evaluate(ctx)``: they write their output
through ``ctx.write`` and return an iterable of ``LoadRequest`` objects.
Nodes that never need a template resource return an empty tuple after
doing their work; the others are generators, and ``#parse`` and
``#include`` suspend the walk by yielding a request that the driving
evaluator answers with the resolved source (or throws a ``LoaderError``
into).

Expression nodes implement ``calculate(ctx)`` as a generator too, whose
return value is the result, so a string template inside an expression can
load resources through whichever driver is running. Leaves that never load
implement ``lookup(ctx)`` instead.

Nodes are immutable once built and hold no render state, so one tree may
be evaluated by any number of renders at the same time.
"""

import logging
from collections import namedtuple
from collections.abc import Iterable, Mapping

from vela import operators
from vela.errors import LoaderError, TemplateError, TemplateExecutionError
from vela.operators import boolean_value, to_number, to_text
from vela.scope import FOREACH, MACRO, MISSING

__all__ = [
    "ArrayAccess",
    "ArrayLiteral",
    "BinaryOp",
    "Block",
    "Break",
    "BreakSignal",
    "ControlFlow",
    "ElseIf",
    "EscapedReference",
    "Evaluate",
    "Expression",
    "ForEach",
    "ForeachInfo",
    "FunctionCall",
    "If",
    "Include",
    "InlineArithmetic",
    "Interpolation",
    "Literal",
    "LoadRequest",
    "Macro",
    "MacroCall",
    "MemberAccess",
    "Node",
    "ObjectLiteral",
    "Parse",
    "RangeLiteral",
    "Set",
    "Stop",
    "StopSignal",
    "StringTemplate",
    "Template",
    "Ternary",
    "Text",
    "UnaryOp",
    "VariableReference",
]

LOG = logging.getLogger(__name__)

NOTHING = ()

LoadRequest = namedtuple("LoadRequest", "name node")


###############################################################################
# Control flow
###############################################################################


class ControlFlow(Exception):
    """Base of the signals that unwind the walk; never reported as errors."""


class BreakSignal(ControlFlow):
    pass


class StopSignal(ControlFlow):
    pass


def guarded(node, ctx, function, *args):
    """Calls into host code, wrapping its failures with the node location."""
    try:
        return function(*args)
    except (TemplateError, ControlFlow):
        raise
    except Exception as e:
        raise TemplateExecutionError(node, e, ctx.filename)


def calculate_all(expressions, ctx):
    values = []
    for expression in expressions:
        values.append((yield from expression.calculate(ctx)))
    return values


###############################################################################
# Base
###############################################################################


class Node(object):
    __slots__ = ("location", "end")

    def __init__(self, location=0, end=None, **fields):
        object.__setattr__(self, "location", location)
        object.__setattr__(self, "end", location if end is None else end)
        for name in self.__slots__:
            object.__setattr__(self, name, fields.pop(name, None))
        if fields:
            raise TypeError(
                "%s has no fields %s" % (type(self).__name__, ", ".join(sorted(fields)))
            )

    def __setattr__(self, name, value):
        raise AttributeError("%s nodes are immutable" % type(self).__name__)

    def __delattr__(self, name):
        raise AttributeError("%s nodes are immutable" % type(self).__name__)

    def fields(self):
        return tuple(getattr(self, name) for name in self.__slots__)

    def __eq__(self, other):
        return type(self) is type(other) and self.fields() == other.fields()

    def __ne__(self, other):
        return not self == other

    __hash__ = None

    def __repr__(self):
        return "%s(%s)" % (
            type(self).__name__,
            ", ".join("%s=%r" % (name, getattr(self, name)) for name in self.__slots__),
        )


class Expression(Node):
    __slots__ = ()

    def calculate(self, ctx):
        yield from NOTHING
        return self.lookup(ctx)


###############################################################################
# Template structure
###############################################################################


class Template(Node):
    __slots__ = ("body", "macros", "filename")

    def evaluate(self, ctx):
        ctx.define_macros(self.macros)
        try:
            yield from self.body.evaluate(ctx)
        except BreakSignal:
            LOG.debug("#break ended %s", self.filename or "the template")


class Block(Node):
    __slots__ = ("body",)

    def evaluate(self, ctx):
        for segment in self.body:
            yield from segment.evaluate(ctx)


class Text(Node):
    __slots__ = ("text",)

    def evaluate(self, ctx):
        ctx.write(self.text)
        return NOTHING


class Interpolation(Node):
    __slots__ = ("expression", "quiet", "source")

    def evaluate(self, ctx):
        value = yield from self.expression.calculate(ctx)
        if value is None:
            ctx.write("" if self.quiet else self.source)
        else:
            ctx.write(guarded(self, ctx, to_text, value))


class EscapedReference(Node):
    """``\\$name`` and its multi-backslash variants.

    Pairs of backslashes collapse to one. An odd backslash makes the
    reference literal, but only when the reference is defined; otherwise
    everything is echoed as written.
    """

    __slots__ = ("backslashes", "expression", "source")

    def evaluate(self, ctx):
        value = yield from self.expression.calculate(ctx)
        if value is None:
            ctx.write("\\" * self.backslashes + self.source)
        elif self.backslashes % 2:
            ctx.write("\\" * (self.backslashes // 2) + self.source)
        else:
            ctx.write("\\" * (self.backslashes // 2) + to_text(value))


class InlineArithmetic(Node):
    """Operators written in plain text between two references (``$a/$b``).

    The operands are combined with the usual precedence and the same operator
    rules as expressions, so ``+`` concatenates when either side is a string.
    Operands that cannot be combined are rendered around the literal
    operators. An undefined operand echoes the whole source.
    """

    __slots__ = ("operands", "operators", "source")

    def evaluate(self, ctx):
        values = yield from calculate_all(self.operands, ctx)
        if any(value is None for value in values):
            ctx.write(self.source)
            return
        result = guarded(self, ctx, self.fold, values)
        if result is None:
            text = to_text(values[0])
            for op, value in zip(self.operators, values[1:]):
                text += op + to_text(value)
            result = text
        ctx.write(to_text(result))

    def fold(self, values):
        terms, ops = [values[0]], []
        for op, value in zip(self.operators, values[1:]):
            if op in "*/%":
                terms[-1] = operators.binary(op, terms[-1], value)
            else:
                terms.append(value)
                ops.append(op)
        result = terms[0]
        for op, value in zip(ops, terms[1:]):
            if result is None:
                return None
            result = operators.binary(op, result, value)
        return result


###############################################################################
# Directives
###############################################################################


class ElseIf(Node):
    __slots__ = ("condition", "body")


class If(Node):
    __slots__ = ("condition", "body", "elseifs", "else_body")

    def evaluate(self, ctx):
        if boolean_value((yield from self.condition.calculate(ctx))):
            yield from self.body.evaluate(ctx)
            return
        for clause in self.elseifs:
            if boolean_value((yield from clause.condition.calculate(ctx))):
                yield from clause.body.evaluate(ctx)
                return
        if self.else_body is not None:
            yield from self.else_body.evaluate(ctx)


class Set(Node):
    __slots__ = ("target", "value")

    def evaluate(self, ctx):
        value = yield from self.value.calculate(ctx)
        target = self.target
        if isinstance(target, VariableReference):
            ctx.scopes.set_variable(target.name, value)
        elif isinstance(target, MemberAccess):
            owner = yield from target.target.calculate(ctx)
            if owner is not None:
                guarded(self, ctx, operators.set_property, owner, target.name, value)
        elif isinstance(target, ArrayAccess):
            owner = yield from target.target.calculate(ctx)
            index = yield from target.index.calculate(ctx)
            if owner is not None:
                guarded(self, ctx, operators.set_item, owner, index, value)


class ForeachInfo(object):
    """The ``$foreach`` object visible inside a loop body."""

    def __init__(self, parent=None):
        self.parent = parent
        self.index = -1
        self.count = 0
        self.hasNext = False

    @property
    def first(self):
        return self.index == 0

    @property
    def last(self):
        return not self.hasNext

    def advance(self, has_next):
        self.index += 1
        self.count += 1
        self.hasNext = has_next

    def stop(self):
        raise BreakSignal()

    def __repr__(self):
        return "ForeachInfo(index=%d, count=%d, hasNext=%s)" % (
            self.index,
            self.count,
            self.hasNext,
        )


def _lookahead(iterable):
    iterator = iter(iterable)
    try:
        current = next(iterator)
    except StopIteration:
        return
    for following in iterator:
        yield current, True
        current = following
    yield current, False


class ForEach(Node):
    __slots__ = ("variable", "iterable", "body", "else_body")

    def items(self, ctx):
        value = yield from self.iterable.calculate(ctx)
        if value is None:
            return NOTHING
        if isinstance(value, Mapping):
            return list(value.values())
        if isinstance(value, str) or not isinstance(value, Iterable):
            LOG.debug("value of $%s is not iterable: %r", self.variable, value)
            return NOTHING
        return value

    def evaluate(self, ctx):
        items = yield from self.items(ctx)
        max_loops = ctx.options.max_loops
        limited = max_loops is not None and max_loops >= 0
        info = ForeachInfo(parent=ctx.scopes.get_variable("foreach") or None)
        try:
            for item, has_next in _lookahead(guarded(self, ctx, iter, items)):
                if limited and info.count >= max_loops:
                    self.truncated(info)
                    break
                # the last iteration the cap allows is reported as the last one
                capped = limited and has_next and info.count + 1 >= max_loops
                info.advance(has_next and not capped)
                with ctx.scopes.scoped(FOREACH):
                    ctx.scopes.set_variable(self.variable, item)
                    ctx.scopes.set_variable("foreach", info)
                    ctx.scopes.set_variable("velocityCount", info.count)
                    ctx.scopes.set_variable("velocityHasNext", info.hasNext)
                    yield from self.body.evaluate(ctx)
                if capped:
                    self.truncated(info)
                    break
        except BreakSignal:
            pass
        if info.count == 0 and self.else_body is not None:
            yield from self.else_body.evaluate(ctx)

    def truncated(self, info):
        LOG.warning(
            "#foreach over $%s stopped after %d iterations", self.variable, info.count
        )


class Break(Node):
    __slots__ = ()

    def evaluate(self, ctx):
        raise BreakSignal()


class Stop(Node):
    __slots__ = ()

    def evaluate(self, ctx):
        raise StopSignal()


class Macro(Node):
    """A macro definition. Definitions are registered when the template
    containing them starts rendering, so the node itself emits nothing."""

    __slots__ = ("name", "parameters", "body")

    def evaluate(self, ctx):
        return NOTHING


class MacroCall(Node):
    __slots__ = ("name", "arguments", "source")

    def evaluate(self, ctx):
        macro = ctx.macros.get(self.name)
        if macro is None:
            LOG.debug("no macro named #%s, echoing the call", self.name)
            ctx.write(self.source)
            return
        if ctx.macro_depth >= ctx.options.max_macro_depth:
            LOG.warning(
                "#%s not expanded: macro calls nested deeper than %d",
                self.name,
                ctx.options.max_macro_depth,
            )
            return
        values = yield from calculate_all(self.arguments, ctx)
        yield from self.expand(ctx, macro, values)

    def expand(self, ctx, macro, values):
        ctx.macro_depth += 1
        try:
            with ctx.scopes.scoped(MACRO):
                for i, parameter in enumerate(macro.parameters):
                    ctx.scopes.set_variable(
                        parameter, values[i] if i < len(values) else None
                    )
                yield from macro.body.evaluate(ctx)
        except BreakSignal:
            pass
        finally:
            ctx.macro_depth -= 1


class Evaluate(Node):
    __slots__ = ("expression",)

    def evaluate(self, ctx):
        value = yield from self.expression.calculate(ctx)
        if value is None:
            return
        if ctx.evaluate_depth >= ctx.options.max_evaluate_depth:
            LOG.warning(
                "#evaluate skipped: nested deeper than %d",
                ctx.options.max_evaluate_depth,
            )
            return
        template = ctx.compile(to_text(value))
        ctx.evaluate_depth += 1
        try:
            yield from template.evaluate(ctx)
        finally:
            ctx.evaluate_depth -= 1


class Parse(Node):
    __slots__ = ("expression",)

    def evaluate(self, ctx):
        value = yield from self.expression.calculate(ctx)
        if value is None:
            return
        name = to_text(value)
        if ctx.parse_depth >= ctx.options.max_parse_depth:
            LOG.warning(
                "#parse('%s') skipped: nested deeper than %d",
                name,
                ctx.options.max_parse_depth,
            )
            return
        try:
            source = yield LoadRequest(name, self)
        except LoaderError:
            if ctx.options.strict_loading:
                raise
            LOG.warning("#parse('%s') skipped: resource not found", name)
            return
        template = ctx.compile(source, name)
        filename, ctx.filename = ctx.filename, name
        ctx.parse_depth += 1
        try:
            yield from template.evaluate(ctx)
        finally:
            ctx.parse_depth -= 1
            ctx.filename = filename


class Include(Node):
    __slots__ = ("expressions",)

    def evaluate(self, ctx):
        for expression in self.expressions:
            value = yield from expression.calculate(ctx)
            if value is None:
                continue
            name = to_text(value)
            try:
                source = yield LoadRequest(name, self)
            except LoaderError:
                if ctx.options.strict_loading:
                    raise
                LOG.warning("#include('%s') skipped: resource not found", name)
                continue
            ctx.write(source)


###############################################################################
# Expressions
###############################################################################


class Literal(Expression):
    __slots__ = ("value",)

    def lookup(self, ctx):
        return self.value


class StringTemplate(Expression):
    """A double-quoted string with references or directives inside."""

    __slots__ = ("body",)

    def calculate(self, ctx):
        return (yield from ctx.render_fragment(self.body))


class VariableReference(Expression):
    __slots__ = ("name",)

    def lookup(self, ctx):
        value = ctx.scopes.get_variable(self.name)
        if value is MISSING:
            LOG.debug("$%s is undefined", self.name)
            return None
        return value


class MemberAccess(Expression):
    __slots__ = ("target", "name")

    def calculate(self, ctx):
        owner = yield from self.target.calculate(ctx)
        if owner is None:
            return None
        return guarded(self, ctx, operators.get_property, owner, self.name)


class FunctionCall(Expression):
    __slots__ = ("target", "name", "arguments")

    def calculate(self, ctx):
        owner = yield from self.target.calculate(ctx)
        if owner is None:
            return None
        arguments = yield from calculate_all(self.arguments, ctx)
        return guarded(
            self, ctx, operators.invoke_method, owner, self.name, arguments
        )


class ArrayAccess(Expression):
    __slots__ = ("target", "index")

    def calculate(self, ctx):
        owner = yield from self.target.calculate(ctx)
        if owner is None:
            return None
        index = yield from self.index.calculate(ctx)
        return guarded(self, ctx, operators.get_item, owner, index)


class ObjectLiteral(Expression):
    __slots__ = ("entries",)

    def calculate(self, ctx):
        result = {}
        for key, value in self.entries:
            name = to_text((yield from key.calculate(ctx)))
            result[name] = yield from value.calculate(ctx)
        return result


class ArrayLiteral(Expression):
    __slots__ = ("items",)

    def calculate(self, ctx):
        return (yield from calculate_all(self.items, ctx))


class RangeLiteral(Expression):
    __slots__ = ("start", "stop")

    def calculate(self, ctx):
        start = to_number((yield from self.start.calculate(ctx)))
        stop = to_number((yield from self.stop.calculate(ctx)))
        if start is None or stop is None:
            return None
        start, stop = int(start), int(stop)
        if stop < start:
            return list(range(start, stop - 1, -1))
        return list(range(start, stop + 1))


class BinaryOp(Expression):
    __slots__ = ("op", "left", "right")

    def calculate(self, ctx):
        left = yield from self.left.calculate(ctx)
        if self.op == "&&" and not boolean_value(left):
            return False
        if self.op == "||" and boolean_value(left):
            return True
        right = yield from self.right.calculate(ctx)
        return guarded(self, ctx, operators.binary, self.op, left, right)


class UnaryOp(Expression):
    __slots__ = ("op", "operand")

    def calculate(self, ctx):
        return operators.unary(self.op, (yield from self.operand.calculate(ctx)))


class Ternary(Expression):
    __slots__ = ("condition", "if_true", "if_false")

    def calculate(self, ctx):
        if boolean_value((yield from self.condition.calculate(ctx))):
            return (yield from self.if_true.calculate(ctx))
        return (yield from self.if_false.calculate(ctx))
