"""Recursive descent over the token stream, producing a concrete syntax tree.

Every grammar rule yields a ``SyntaxNode`` whose children are the tokens and
sub-nodes it consumed, punctuation included; the builder strips what it does
not need. Expression rules only wrap their operands when an operator is
actually present, so ``$a`` stays a bare ``reference`` node.
"""

from collections import namedtuple

from vela import lexer
from vela.errors import TemplateSyntaxError
from vela.lexer import (
    COLON,
    COMMA,
    DIRECTIVE,
    DOT,
    EOF,
    ESCAPE,
    IDENT,
    INLINE_OP,
    LBRACE,
    LBRACKET,
    LPAREN,
    MACRO_CALL,
    NEWLINE,
    NUMBER,
    OP,
    PIPE,
    RANGE,
    RBRACE,
    RBRACKET,
    REF,
    RPAREN,
    STRING,
    WS,
    directive_name,
)

__all__ = ["Parser", "SyntaxNode", "parse", "check", "RESERVED_NAMES"]


SyntaxNode = namedtuple("SyntaxNode", "rule children start end")

RESERVED_NAMES = (
    "if",
    "else",
    "elseif",
    "set",
    "macro",
    "foreach",
    "parse",
    "include",
    "evaluate",
    "stop",
    "break",
    "end",
    "define",
)

BLOCK_TERMINATORS = ("else", "elseif", "end")

# nesting deeper than this would exhaust the interpreter stack while parsing,
# building or rendering
MAX_BLOCK_DEPTH = 64
MAX_EXPRESSION_DEPTH = 32

LITERAL_WORDS = ("true", "false", "null")

# precedence levels, lowest first: (rule, symbolic operators, word operators)
BINARY_LEVELS = (
    ("or", ("||",), ("or",)),
    ("and", ("&&",), ("and",)),
    ("equality", ("==", "!="), ("eq", "ne")),
    ("relational", ("<", "<=", ">", ">="), ("lt", "le", "gt", "ge")),
    ("additive", ("+", "-"), ()),
    ("multiplicative", ("*", "/", "%"), ()),
)

TEXT_TOKENS = (
    lexer.TEXT,
    WS,
    NEWLINE,
    lexer.LINE_COMMENT,
    lexer.BLOCK_COMMENT,
    lexer.UNPARSED,
    INLINE_OP,
)


def node_end(item):
    if isinstance(item, SyntaxNode):
        return item.end
    return item.start + len(item.text)


class Parser(object):
    def __init__(self, tokens, source, filename=None):
        self.tokens = tokens
        self.source = source
        self.filename = filename
        self.index = 0
        self.block_depth = 0
        self.expression_depth = 0

    # token plumbing

    def peek(self, offset=0):
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self):
        token = self.tokens[self.index]
        if token.kind != EOF:
            self.index += 1
        return token

    def at(self, kind, text=None):
        token = self.peek()
        return token.kind == kind and (text is None or token.text == text)

    def at_word(self, *words):
        token = self.peek()
        return token.kind == IDENT and token.text in words

    def at_directive(self, *names):
        token = self.peek()
        return token.kind == DIRECTIVE and directive_name(token) in names

    def optional(self, kind, text=None):
        if self.at(kind, text):
            return self.advance()
        return None

    def require(self, kind, expected, rule, text=None):
        if not self.at(kind, text):
            raise self.error(expected, rule)
        return self.advance()

    def error(self, expected, rule):
        index = self.index
        while self.tokens[index].kind in (WS, NEWLINE):
            index += 1
        position = self.tokens[index].start
        return TemplateSyntaxError(
            self.source, position, expected, rule=rule, filename=self.filename
        )

    def node(self, rule, children):
        start = children[0].start if children else self.peek().start
        end = node_end(children[-1]) if children else start
        return SyntaxNode(rule, children, start, end)

    # template structure

    def template(self):
        body = self.block()
        if not self.at(EOF):
            raise self.error("block element", "template")
        return SyntaxNode("template", [body], 0, len(self.source))

    def block(self):
        if self.block_depth >= MAX_BLOCK_DEPTH:
            raise self.error("at most %d nested blocks" % MAX_BLOCK_DEPTH, "block")
        self.block_depth += 1
        try:
            children = []
            while not self.at(EOF) and not self.at_directive(*BLOCK_TERMINATORS):
                children.append(self.segment())
        finally:
            self.block_depth -= 1
        return self.node("block", children)

    def segment(self):
        token = self.peek()
        kind = token.kind
        if kind in TEXT_TOKENS:
            return self.advance()
        if kind == ESCAPE:
            return self.escape()
        if kind == REF:
            return self.inline_expression()
        if kind == MACRO_CALL:
            return self.macro_call()
        if kind == DIRECTIVE:
            return getattr(self, "directive_" + directive_name(token))()
        raise self.error("template text, reference or directive", "block")

    def escape(self):
        escape = self.advance()
        odd = len(escape.text) % 2
        if self.at(REF):
            return self.node("escaped_reference", [escape, self.reference()])
        if odd and self.at(DIRECTIVE):
            return self.node("escaped_directive", [escape, self.advance()])
        return self.node("escape", [escape])

    def inline_expression(self):
        reference = self.reference()
        if not self.at(INLINE_OP):
            return reference
        children = [reference]
        while self.at(INLINE_OP) and self.peek(1).kind == REF:
            children.append(self.advance())
            children.append(self.reference())
        return self.node("inline_expression", children)

    # directives

    def arguments(self, rule):
        """``( expr )`` directly after a directive keyword."""
        open_paren = self.require(LPAREN, "(", rule)
        expression = self.expression()
        close_paren = self.require(RPAREN, ")", rule)
        return [open_paren, expression, close_paren]

    def directive_if(self):
        children = [self.advance()] + self.arguments("if directive")
        children.append(self.block())
        while self.at_directive("elseif"):
            clause = [self.advance()] + self.arguments("elseif directive")
            clause.append(self.block())
            children.append(self.node("elseif", clause))
        if self.at_directive("else"):
            children.append(self.node("else", [self.advance(), self.block()]))
        if not self.at_directive("end"):
            raise self.error("#else, #elseif or #end", "if directive")
        children.append(self.advance())
        return self.node("if", children)

    def directive_set(self):
        rule = "set directive"
        children = [self.advance(), self.require(LPAREN, "(", rule)]
        if not self.at(REF):
            raise self.error("reference", rule)
        children.append(self.reference())
        children.append(self.require(OP, "=", rule, text="="))
        children.append(self.expression())
        children.append(self.require(RPAREN, ")", rule))
        return self.node("set", children)

    def directive_foreach(self):
        rule = "foreach directive"
        children = [self.advance(), self.require(LPAREN, "(", rule)]
        children.append(self.require(REF, "loop var name", rule))
        if not self.at_word("in"):
            raise self.error("in", rule)
        children.append(self.advance())
        children.append(self.expression())
        children.append(self.require(RPAREN, ")", rule))
        children.append(self.block())
        if self.at_directive("else"):
            children.append(self.node("else", [self.advance(), self.block()]))
        if not self.at_directive("end"):
            raise self.error("#end", rule)
        children.append(self.advance())
        return self.node("foreach", children)

    def directive_macro(self):
        rule = "macro directive"
        children = [self.advance(), self.require(LPAREN, "(", rule)]
        if not self.at(IDENT):
            raise self.error("macro name", rule)
        if self.peek().text.lower() in RESERVED_NAMES:
            raise self.error("non-reserved name", rule)
        children.append(self.advance())
        parameters = []
        while not self.at(RPAREN):
            self.optional(COMMA)
            parameter = self.require(REF, ") or arg name", rule)
            if "{" in parameter.text or "!" in parameter.text:
                raise self.error("plain arg name", rule)
            parameters.append(parameter)
        children.append(self.node("parameters", parameters))
        children.append(self.advance())
        children.append(self.block())
        if not self.at_directive("end"):
            raise self.error("#end", rule)
        children.append(self.advance())
        return self.node("macro", children)

    def macro_call(self):
        rule = "macro call"
        children = [self.advance(), self.require(LPAREN, "(", rule)]
        arguments = []
        while not self.at(RPAREN):
            if arguments:
                self.optional(COMMA)
            if self.at(EOF):
                raise self.error("argument value or )", rule)
            arguments.append(self.expression())
        children.append(self.node("arguments", arguments))
        children.append(self.advance())
        return self.node("macro_call", children)

    def directive_break(self):
        return self.node("break", [self.advance()])

    def directive_stop(self):
        return self.node("stop", [self.advance()])

    def directive_evaluate(self):
        children = [self.advance()] + self.arguments("evaluate directive")
        return self.node("evaluate", children)

    def directive_parse(self):
        children = [self.advance()] + self.arguments("parse directive")
        return self.node("parse", children)

    def directive_include(self):
        rule = "include directive"
        children = [self.advance(), self.require(LPAREN, "(", rule)]
        children.append(self.expression())
        while self.optional(COMMA):
            children.append(self.expression())
        children.append(self.require(RPAREN, ")", rule))
        return self.node("include", children)

    # references

    def reference(self):
        token = self.advance()
        children = [token] + self.suffixes()
        if "{" in token.text:
            if self.at(PIPE):
                pipe = self.advance()
                children.append(self.node("alternate", [pipe, self.expression()]))
            children.append(self.require(RBRACE, "}", "reference"))
        return self.node("reference", children)

    def suffixes(self):
        suffixes = []
        while True:
            if self.at(DOT) and self.peek(1).kind == IDENT:
                dot, name = self.advance(), self.advance()
                if self.at(LPAREN):
                    suffixes.append(self.node("call", [dot, name] + self.call_arguments()))
                else:
                    suffixes.append(self.node("member", [dot, name]))
            elif self.at(LBRACKET):
                open_bracket = self.advance()
                index = self.expression()
                close_bracket = self.require(RBRACKET, "]", "index")
                suffixes.append(self.node("index", [open_bracket, index, close_bracket]))
            else:
                return suffixes

    def call_arguments(self):
        open_paren = self.advance()
        arguments = []
        if not self.at(RPAREN):
            arguments.append(self.expression())
            while self.optional(COMMA):
                arguments.append(self.expression())
        close_paren = self.require(RPAREN, ")", "parameter list")
        return [open_paren, self.node("arguments", arguments), close_paren]

    # expressions

    def expression(self):
        return self.nested(self.ternary)

    def nested(self, rule):
        if self.expression_depth >= MAX_EXPRESSION_DEPTH:
            raise self.error(
                "at most %d nested expressions" % MAX_EXPRESSION_DEPTH, "expression"
            )
        self.expression_depth += 1
        try:
            return rule()
        finally:
            self.expression_depth -= 1

    def ternary(self):
        condition = self.binary(0)
        if not self.at(OP, "?"):
            return condition
        question = self.advance()
        if_true = self.expression()
        colon = self.require(COLON, ":", "ternary")
        if_false = self.expression()
        return self.node("ternary", [condition, question, if_true, colon, if_false])

    def binary(self, level):
        if level == len(BINARY_LEVELS):
            return self.unary()
        rule, symbols, words = BINARY_LEVELS[level]
        children = [self.binary(level + 1)]
        while (self.at(OP) and self.peek().text in symbols) or self.at_word(*words):
            children.append(self.advance())
            children.append(self.binary(level + 1))
        if len(children) == 1:
            return children[0]
        return self.node(rule, children)

    def unary(self):
        if (self.at(OP) and self.peek().text in ("!", "-", "+")) or self.at_word("not"):
            op = self.advance()
            return self.node("unary", [op, self.nested(self.unary)])
        return self.postfix()

    def postfix(self):
        if self.at(REF):
            return self.reference()
        primary = self.primary()
        suffixes = self.suffixes()
        if not suffixes:
            return primary
        return self.node("postfix", [primary] + suffixes)

    def primary(self):
        token = self.peek()
        if token.kind in (NUMBER, STRING):
            return self.node("literal", [self.advance()])
        if token.kind == IDENT and token.text in LITERAL_WORDS:
            return self.node("literal", [self.advance()])
        if token.kind == LPAREN:
            open_paren = self.advance()
            expression = self.expression()
            close_paren = self.require(RPAREN, ")", "expression")
            return self.node("group", [open_paren, expression, close_paren])
        if token.kind == LBRACKET:
            return self.list_or_range()
        if token.kind == LBRACE:
            return self.map()
        raise self.error("value", "expression")

    def list_or_range(self):
        children = [self.advance()]
        if self.at(RBRACKET):
            children.append(self.advance())
            return self.node("list", children)
        children.append(self.expression())
        if self.at(RANGE):
            children.append(self.advance())
            children.append(self.expression())
            children.append(self.require(RBRACKET, "]", "range"))
            return self.node("range", children)
        while self.optional(COMMA):
            children.append(self.expression())
        children.append(self.require(RBRACKET, "] or ,", "list"))
        return self.node("list", children)

    def map(self):
        children = [self.advance()]
        if not self.at(RBRACE):
            children.append(self.entry())
            while self.optional(COMMA):
                children.append(self.entry())
        children.append(self.require(RBRACE, "} or ,", "map"))
        return self.node("map", children)

    def entry(self):
        key = self.expression()
        colon = self.require(COLON, ":", "map")
        return self.node("entry", [key, colon, self.expression()])


def parse(source, filename=None):
    tokens = lexer.tokenize(source, filename)
    return Parser(tokens, source, filename).template()


def check(source, filename=None):
    """Returns the parse issues of ``source``; empty when it is valid."""
    try:
        parse(source, filename)
    except TemplateSyntaxError as e:
        return list(e.errors)
    return []
