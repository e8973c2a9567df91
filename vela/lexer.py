"""Turns template source into a flat stream of tokens.

The lexer runs in two modes. In *text* mode everything is literal output
except comments, directives, references and escapes. The contents of
directive parentheses, reference brackets and formal references are
scanned in *code* mode, where whitespace is insignificant. A stack of
expected closing brackets decides when code mode ends; an unbraced
reference additionally pushes a ``ref`` marker so that a following
``.name``, ``(...)`` or ``[...]`` keeps extending the reference chain.
"""

import re
from collections import namedtuple

from vela.errors import LexicalError

__all__ = ["Lexer", "Token", "tokenize", "directive_name"]


Token = namedtuple("Token", "kind text start")

# text mode
TEXT = "TEXT"
WS = "WS"
NEWLINE = "NEWLINE"
LINE_COMMENT = "LINE_COMMENT"
BLOCK_COMMENT = "BLOCK_COMMENT"
UNPARSED = "UNPARSED"
ESCAPE = "ESCAPE"
DIRECTIVE = "DIRECTIVE"
MACRO_CALL = "MACRO_CALL"
REF = "REF"
INLINE_OP = "INLINE_OP"

# code mode
STRING = "STRING"
NUMBER = "NUMBER"
IDENT = "IDENT"
OP = "OP"
DOT = "DOT"
RANGE = "RANGE"
COMMA = "COMMA"
COLON = "COLON"
PIPE = "PIPE"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
LBRACE = "LBRACE"
RBRACE = "RBRACE"

EOF = "EOF"

DIRECTIVES = (
    "if",
    "elseif",
    "else",
    "end",
    "set",
    "foreach",
    "break",
    "stop",
    "macro",
    "evaluate",
    "parse",
    "include",
)
ARGUMENT_DIRECTIVES = (
    "if",
    "elseif",
    "set",
    "foreach",
    "macro",
    "evaluate",
    "parse",
    "include",
)

OPENERS = {"(": (LPAREN, ")"), "[": (LBRACKET, "]"), "{": (LBRACE, "}")}
CLOSERS = {")": RPAREN, "]": RBRACKET, "}": RBRACE}
PUNCTUATION = {",": COMMA, ":": COLON, "|": PIPE}

CHAIN = "ref"


def directive_name(token):
    return token.text.lstrip("#").strip("{}")


class Lexer(object):
    LINE_COMMENT = re.compile(r"##[^\r\n]*(?:\r\n|\r|\n)?")
    BLOCK_COMMENT = re.compile(r"#\*.*?\*#", re.S)
    UNPARSED = re.compile(r"#\[\[.*?\]\]#", re.S)
    DIRECTIVE = re.compile(
        r"#(?:\{([a-zA-Z][a-zA-Z0-9_]*)\}|([a-zA-Z][a-zA-Z0-9_]*))"
    )
    ARGUMENTS_START = re.compile(r"\s*\(")
    MACRO_ARGUMENTS_START = re.compile(r"[ \t]*\(")
    REFERENCE = re.compile(r"\$!?(\{)?[a-zA-Z_][a-zA-Z0-9_]*")
    BACKSLASHES = re.compile(r"\\+")
    NEWLINE = re.compile(r"\r\n|\r|\n")
    WHITESPACE = re.compile(r"[ \t]+")
    PLAIN = re.compile(r"[^#$\\\r\n \t]+")
    MEMBER = re.compile(r"\.([a-zA-Z_][a-zA-Z0-9_]*)")
    INLINE_OPERATOR = re.compile(r"[-+*/%](?=\$!?\{?[a-zA-Z_])")

    CODE_SPACE = re.compile(r"\s+")
    STRING = re.compile(r""""(?:[^"\\]|\\.|"")*"|'(?:[^'\\]|\\.|'')*'""", re.S)
    NUMBER = re.compile(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
    IDENTIFIER = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
    OPERATOR = re.compile(r"==|!=|<=|>=|&&|\|\||[-+*/%<>!=?]")

    def __init__(self, source, filename=None):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.tokens = []
        self.stack = []

    def tokenize(self):
        source_length = len(self.source)
        while self.pos < source_length:
            if not self.stack:
                self.lex_text()
            elif self.stack[-1] == CHAIN:
                self.lex_chain()
            else:
                self.lex_code()
        self.tokens.append(Token(EOF, "", self.pos))
        return self.tokens

    def emit(self, kind, end):
        self.tokens.append(Token(kind, self.source[self.pos : end], self.pos))
        self.pos = end

    def error(self, expected):
        return LexicalError(
            self.source, self.pos, expected, tokens=self.tokens, filename=self.filename
        )

    # text mode

    def lex_text(self):
        char = self.source[self.pos]
        if char == "#":
            self.lex_hash()
        elif char == "$":
            if not self.lex_reference():
                self.emit(TEXT, self.pos + 1)
        elif char == "\\":
            m = self.BACKSLASHES.match(self.source, self.pos)
            if self.escapable(m.end()):
                self.emit(ESCAPE, m.end())
                if len(m.group()) % 2:
                    # an escaped keyword is literal, its arguments are text
                    d = self.DIRECTIVE.match(self.source, self.pos)
                    if d and (d.group(1) or d.group(2)) in DIRECTIVES:
                        self.emit(DIRECTIVE, d.end())
            else:
                self.emit(TEXT, m.end())
        elif char in "\r\n":
            self.emit(NEWLINE, self.NEWLINE.match(self.source, self.pos).end())
        elif char in " \t":
            self.emit(WS, self.WHITESPACE.match(self.source, self.pos).end())
        else:
            self.emit(TEXT, self.PLAIN.match(self.source, self.pos).end())

    def lex_hash(self):
        source, pos = self.source, self.pos
        if source.startswith("##", pos):
            self.emit(LINE_COMMENT, self.LINE_COMMENT.match(source, pos).end())
            return
        if source.startswith("#*", pos):
            m = self.BLOCK_COMMENT.match(source, pos)
            if not m:
                raise self.error("*# to close the comment")
            self.emit(BLOCK_COMMENT, m.end())
            return
        if source.startswith("#[[", pos):
            m = self.UNPARSED.match(source, pos)
            if not m:
                raise self.error("]]# to close the unparsed content")
            self.emit(UNPARSED, m.end())
            return
        m = self.DIRECTIVE.match(source, pos)
        if m:
            name = m.group(1) or m.group(2)
            if name in DIRECTIVES:
                self.emit(DIRECTIVE, m.end())
                if name in ARGUMENT_DIRECTIVES:
                    self.open_arguments(self.ARGUMENTS_START)
                return
            if m.group(2) and self.MACRO_ARGUMENTS_START.match(source, m.end()):
                self.emit(MACRO_CALL, m.end())
                self.open_arguments(self.MACRO_ARGUMENTS_START)
                return
        self.emit(TEXT, pos + 1)

    def open_arguments(self, pattern):
        m = pattern.match(self.source, self.pos)
        if m:
            self.pos = m.end() - 1
            self.emit(LPAREN, m.end())
            self.stack.append(")")

    def lex_reference(self):
        m = self.REFERENCE.match(self.source, self.pos)
        if not m:
            return False
        self.emit(REF, m.end())
        self.stack.append("}" if m.group(1) else CHAIN)
        return True

    def escapable(self, pos):
        if self.REFERENCE.match(self.source, pos):
            return True
        m = self.DIRECTIVE.match(self.source, pos)
        return bool(m) and (m.group(1) or m.group(2)) in DIRECTIVES

    def lex_chain(self):
        source, pos = self.source, self.pos
        char = source[pos]
        m = self.MEMBER.match(source, pos)
        if m:
            self.emit(DOT, pos + 1)
            self.emit(IDENT, m.end())
            return
        if char == "(" and self.tokens[-1].kind == IDENT:
            self.emit(LPAREN, pos + 1)
            self.stack.append(")")
            return
        if char == "[":
            self.emit(LBRACKET, pos + 1)
            self.stack.append("]")
            return
        self.stack.pop()
        m = self.INLINE_OPERATOR.match(source, pos)
        if m:
            self.emit(INLINE_OP, m.end())

    # code mode

    def lex_code(self):
        source, pos = self.source, self.pos
        m = self.CODE_SPACE.match(source, pos)
        if m:
            self.pos = m.end()
            return
        char = source[pos]
        if char in "\"'":
            m = self.STRING.match(source, pos)
            if not m:
                raise self.error("closing %s of the string literal" % char)
            self.emit(STRING, m.end())
        elif char == "$":
            if not self.lex_reference():
                raise self.error("a reference name after $")
            # chains inside code are plain postfix syntax
            if self.stack[-1] == CHAIN:
                self.stack.pop()
        elif char.isdigit():
            self.emit(NUMBER, self.NUMBER.match(source, pos).end())
        elif source.startswith("..", pos):
            self.emit(RANGE, pos + 2)
        elif char == ".":
            self.emit(DOT, pos + 1)
        elif char in OPENERS:
            kind, closer = OPENERS[char]
            self.emit(kind, pos + 1)
            self.stack.append(closer)
        elif char in CLOSERS:
            self.emit(CLOSERS[char], pos + 1)
            if self.stack[-1] == char:
                self.stack.pop()
        elif self.IDENTIFIER.match(source, pos):
            self.emit(IDENT, self.IDENTIFIER.match(source, pos).end())
        elif self.OPERATOR.match(source, pos):
            self.emit(OP, self.OPERATOR.match(source, pos).end())
        elif char in PUNCTUATION:
            self.emit(PUNCTUATION[char], pos + 1)
        else:
            raise self.error("an expression, got unrecognized character %r" % char)


def tokenize(source, filename=None):
    return Lexer(source, filename).tokenize()
