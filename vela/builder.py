"""Maps the concrete syntax tree onto the immutable AST in ``vela.nodes``."""

import re

from vela import gobbling, lexer, nodes
from vela.errors import TemplateSyntaxError
from vela.lexer import (
    BLOCK_COMMENT,
    IDENT,
    LINE_COMMENT,
    NEWLINE,
    NUMBER,
    UNPARSED,
    WS,
    Token,
)
from vela.operators import WORD_OPERATORS
from vela.options import SpaceGobbling
from vela.parser import Parser, SyntaxNode, parse

__all__ = ["Builder", "build", "unescape"]


ESCAPED_CHAR = re.compile(r"\\(.)", re.S)
ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
}

BINARY_RULES = ("or", "and", "equality", "relational", "additive", "multiplicative")

LITERAL_WORDS = {"true": True, "false": False, "null": None}


def unescape(text):
    """``\\n``, ``\\r``, ``\\t``, ``\\b`` and ``\\f`` become control
    characters; any other escaped character stands for itself."""
    return ESCAPED_CHAR.sub(lambda m: ESCAPES.get(m.group(1), m.group(1)), text)


def reference_name(token):
    return token.text.lstrip("$!{")


class Builder(object):
    def __init__(self, source, filename=None, suppressed=frozenset(), in_string=False):
        self.source = source
        self.filename = filename
        self.suppressed = suppressed
        self.in_string = in_string
        self.macros = []

    def source_of(self, node):
        return self.source[node.start : node.end]

    def template(self, cst):
        body = self.block(cst.children[0])
        return nodes.Template(
            cst.start,
            cst.end,
            body=body,
            macros=tuple(self.macros),
            filename=self.filename,
        )

    # template text

    def block(self, node):
        segments = []
        pieces = []

        def flush():
            if pieces:
                segments.append(self.text(pieces))
                del pieces[:]

        for child in node.children:
            if isinstance(child, Token):
                if child.kind in (WS, NEWLINE) and child.start in self.suppressed:
                    continue
                if child.kind in (LINE_COMMENT, BLOCK_COMMENT):
                    continue
                if child.kind == UNPARSED:
                    pieces.append((child, child.text[3:-3], False))
                else:
                    pieces.append((child, child.text, self.in_string))
                continue
            rule = child.rule
            if rule == "escape":
                count = len(child.children[0].text)
                pieces.append((child, "\\" * (count // 2), False))
            elif rule == "escaped_directive":
                escape, directive = child.children
                text = "\\" * (len(escape.text) // 2) + directive.text
                pieces.append((child, text, False))
            else:
                flush()
                segments.append(getattr(self, "segment_" + rule)(child))
        flush()
        return nodes.Block(node.start, node.end, body=tuple(segments))

    def text(self, pieces):
        parts, raw = [], []
        for _, text, escaped in pieces:
            if escaped:
                raw.append(text)
                continue
            if raw:
                parts.append(unescape("".join(raw)))
                raw = []
            parts.append(text)
        if raw:
            parts.append(unescape("".join(raw)))
        first, last = pieces[0][0], pieces[-1][0]
        end = last.end if isinstance(last, SyntaxNode) else last.start + len(last.text)
        return nodes.Text(first.start, end, text="".join(parts))

    def segment_reference(self, node):
        expression, quiet = self.reference(node)
        return nodes.Interpolation(
            node.start,
            node.end,
            expression=expression,
            quiet=quiet,
            source=self.source_of(node),
        )

    def segment_escaped_reference(self, node):
        escape, reference = node.children
        expression, _ = self.reference(reference)
        return nodes.EscapedReference(
            node.start,
            node.end,
            backslashes=len(escape.text),
            expression=expression,
            source=self.source_of(reference),
        )

    def segment_inline_expression(self, node):
        operands = tuple(self.reference(child)[0] for child in node.children[::2])
        operators = tuple(token.text for token in node.children[1::2])
        return nodes.InlineArithmetic(
            node.start,
            node.end,
            operands=operands,
            operators=operators,
            source=self.source_of(node),
        )

    # directives

    def segment_if(self, node):
        children = node.children
        elseifs, else_body = [], None
        for child in children[5:-1]:
            if child.rule == "elseif":
                elseifs.append(
                    nodes.ElseIf(
                        child.start,
                        child.end,
                        condition=self.expression(child.children[2]),
                        body=self.block(child.children[4]),
                    )
                )
            else:
                else_body = self.block(child.children[1])
        return nodes.If(
            node.start,
            node.end,
            condition=self.expression(children[2]),
            body=self.block(children[4]),
            elseifs=tuple(elseifs),
            else_body=else_body,
        )

    def segment_set(self, node):
        target, _ = self.reference(node.children[2])
        return nodes.Set(
            node.start,
            node.end,
            target=target,
            value=self.expression(node.children[4]),
        )

    def segment_foreach(self, node):
        children = node.children
        else_body = None
        if isinstance(children[7], SyntaxNode) and children[7].rule == "else":
            else_body = self.block(children[7].children[1])
        return nodes.ForEach(
            node.start,
            node.end,
            variable=reference_name(children[2]),
            iterable=self.expression(children[4]),
            body=self.block(children[6]),
            else_body=else_body,
        )

    def segment_macro(self, node):
        children = node.children
        macro = nodes.Macro(
            node.start,
            node.end,
            name=children[2].text,
            parameters=tuple(reference_name(p) for p in children[3].children),
            body=self.block(children[5]),
        )
        self.macros.append(macro)
        return macro

    def segment_macro_call(self, node):
        token, _, arguments = node.children[:3]
        return nodes.MacroCall(
            node.start,
            node.end,
            name=token.text[1:],
            arguments=tuple(self.expression(a) for a in arguments.children),
            source=self.source_of(node),
        )

    def segment_break(self, node):
        return nodes.Break(node.start, node.end)

    def segment_stop(self, node):
        return nodes.Stop(node.start, node.end)

    def segment_evaluate(self, node):
        return nodes.Evaluate(
            node.start, node.end, expression=self.expression(node.children[2])
        )

    def segment_parse(self, node):
        return nodes.Parse(
            node.start, node.end, expression=self.expression(node.children[2])
        )

    def segment_include(self, node):
        return nodes.Include(
            node.start,
            node.end,
            expressions=tuple(self.expression(c) for c in node.children[2:-1]),
        )

    # expressions

    def reference(self, node):
        token = node.children[0]
        expression = nodes.VariableReference(
            token.start, token.start + len(token.text), name=reference_name(token)
        )
        for child in node.children[1:]:
            if not isinstance(child, SyntaxNode):
                continue
            if child.rule == "alternate":
                expression = nodes.Ternary(
                    node.start,
                    node.end,
                    condition=expression,
                    if_true=expression,
                    if_false=self.expression(child.children[1]),
                )
            else:
                expression = self.suffix(expression, child, node.start)
        return expression, token.text.startswith("$!")

    def suffix(self, target, node, start):
        if node.rule == "member":
            return nodes.MemberAccess(
                start, node.end, target=target, name=node.children[1].text
            )
        if node.rule == "call":
            arguments = node.children[3].children
            return nodes.FunctionCall(
                start,
                node.end,
                target=target,
                name=node.children[1].text,
                arguments=tuple(self.expression(a) for a in arguments),
            )
        return nodes.ArrayAccess(
            start, node.end, target=target, index=self.expression(node.children[1])
        )

    def expression(self, node):
        if node.rule in BINARY_RULES:
            return self.binary(node)
        return getattr(self, "expression_" + node.rule)(node)

    def binary(self, node):
        children = node.children
        result = self.expression(children[0])
        for op, operand in zip(children[1::2], children[2::2]):
            symbol = WORD_OPERATORS.get(op.text, op.text)
            result = nodes.BinaryOp(
                node.start,
                operand.end,
                op=symbol,
                left=result,
                right=self.expression(operand),
            )
        return result

    def expression_reference(self, node):
        return self.reference(node)[0]

    def expression_unary(self, node):
        op, operand = node.children
        return nodes.UnaryOp(
            node.start,
            node.end,
            op=WORD_OPERATORS.get(op.text, op.text),
            operand=self.expression(operand),
        )

    def expression_ternary(self, node):
        condition, _, if_true, _, if_false = node.children
        return nodes.Ternary(
            node.start,
            node.end,
            condition=self.expression(condition),
            if_true=self.expression(if_true),
            if_false=self.expression(if_false),
        )

    def expression_group(self, node):
        return self.expression(node.children[1])

    def expression_postfix(self, node):
        expression = self.expression(node.children[0])
        for suffix in node.children[1:]:
            expression = self.suffix(expression, suffix, node.start)
        return expression

    def expression_list(self, node):
        return nodes.ArrayLiteral(
            node.start,
            node.end,
            items=tuple(self.expression(c) for c in node.children[1:-1]),
        )

    def expression_range(self, node):
        return nodes.RangeLiteral(
            node.start,
            node.end,
            start=self.expression(node.children[1]),
            stop=self.expression(node.children[3]),
        )

    def expression_map(self, node):
        entries = []
        for entry in node.children[1:-1]:
            key, _, value = entry.children
            entries.append((self.expression(key), self.expression(value)))
        return nodes.ObjectLiteral(node.start, node.end, entries=tuple(entries))

    def expression_literal(self, node):
        token = node.children[0]
        if token.kind == NUMBER:
            text = token.text
            value = float(text) if "." in text or "e" in text.lower() else int(text)
            return nodes.Literal(node.start, node.end, value=value)
        if token.kind == IDENT:
            return nodes.Literal(node.start, node.end, value=LITERAL_WORDS[token.text])
        return self.string(token)

    def string(self, token):
        quote, inner = token.text[0], token.text[1:-1]
        inner = inner.replace(quote * 2, quote)
        end = token.start + len(token.text)
        if quote == "'" or ("$" not in inner and "#" not in inner):
            return nodes.Literal(token.start, end, value=unescape(inner))
        try:
            cst = Parser(lexer.tokenize(inner, self.filename), inner, self.filename).template()
        except TemplateSyntaxError as e:
            raise TemplateSyntaxError(
                self.source,
                token.start + 1 + e.position,
                e.expected,
                rule="string literal",
                filename=self.filename,
            )
        builder = Builder(inner, self.filename, in_string=True)
        body = builder.block(cst.children[0])
        self.macros.extend(builder.macros)
        return nodes.StringTemplate(token.start, end, body=body)


def build(source, filename=None, space_gobbling=SpaceGobbling.DEFAULT):
    """Compiles template source into a ``vela.nodes.Template``."""
    cst = parse(source, filename)
    suppressed = gobbling.plan(cst, space_gobbling)
    return Builder(source, filename, suppressed).template(cst)
